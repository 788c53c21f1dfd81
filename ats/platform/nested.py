from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fastapi import HTTPException
from opentelemetry import trace
from pydantic import BaseModel, ValidationError
from sqlalchemy import inspect, select
from sqlalchemy.orm import Session

from ats.core.context import get_correlation_id
from ats.core.database import TransactionBudget
from ats.core.errors import FieldError, NotFound, ValidationFailed, field_error
from ats.metrics import observe_child_operations, observe_nested_upsert


logger = logging.getLogger("ats.nested")
tracer = trace.get_tracer("ats.nested")

ACTION_KEY = "_action"


class ChildAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class ChildOperation:
    action: ChildAction
    index: int
    target_id: uuid.UUID | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CollectionChanges:
    created: int = 0
    updated: int = 0
    deleted: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"created": self.created, "updated": self.updated, "deleted": self.deleted}


@dataclass(frozen=True, slots=True)
class ExclusiveFlag:
    field: str
    on: Any


@dataclass(frozen=True, slots=True)
class ChildCollection:
    name: str
    label: str
    model: type[Any]
    id_field: str
    parent_field: str
    create_schema: type[BaseModel]
    update_schema: type[BaseModel] | None = None
    exclusive: ExclusiveFlag | None = None
    single: bool = False

    def path(self, index: int) -> str:
        return self.name if self.single else f"{self.name}.{index}"


def _validation_errors(prefix: str, exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        path = f"{prefix}.{location}" if location else prefix
        message = str(error.get("msg", "Invalid value"))
        errors.append(field_error(path, message.removeprefix("Value error, ")))
    return errors


def _parse_target(raw: Any) -> uuid.UUID | None:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


def resolve_operations(
    collection: ChildCollection,
    elements: Sequence[Any] | None,
    *,
    allow_existing: bool = True,
) -> list[ChildOperation]:
    operations: list[ChildOperation] = []
    errors: list[FieldError] = []

    for index, element in enumerate(elements or ()):
        prefix = collection.path(index)
        if not isinstance(element, Mapping):
            errors.append(field_error(prefix, "Input should be an object"))
            continue

        raw = dict(element)
        action_raw = raw.pop(ACTION_KEY, None)
        target_raw = raw.pop(collection.id_field, None)

        if action_raw is None:
            if target_raw is not None:
                errors.append(
                    field_error(
                        f"{prefix}.{ACTION_KEY}",
                        f"{ACTION_KEY} is required when {collection.id_field} is provided",
                    )
                )
                continue
            action = ChildAction.CREATE
        else:
            try:
                action = ChildAction(str(action_raw).lower())
            except ValueError:
                errors.append(field_error(f"{prefix}.{ACTION_KEY}", f"{ACTION_KEY} must be one of create, update, delete"))
                continue

        if not allow_existing and action is not ChildAction.CREATE:
            errors.append(field_error(f"{prefix}.{ACTION_KEY}", "Only create operations are allowed"))
            continue

        target_id: uuid.UUID | None = None
        if action is ChildAction.CREATE:
            if target_raw is not None:
                errors.append(
                    field_error(f"{prefix}.{collection.id_field}", f"{collection.id_field} must not be provided for create")
                )
                continue
        else:
            if target_raw is None:
                errors.append(
                    field_error(f"{prefix}.{collection.id_field}", f"{collection.id_field} is required for {action.value}")
                )
                continue
            target_id = _parse_target(target_raw)
            if target_id is None:
                errors.append(field_error(f"{prefix}.{collection.id_field}", "Input should be a valid UUID"))
                continue

        try:
            if action is ChildAction.CREATE:
                fields = collection.create_schema.model_validate(raw).model_dump(mode="python")
            elif action is ChildAction.UPDATE:
                schema = collection.update_schema or collection.create_schema
                fields = schema.model_validate(raw).model_dump(mode="python", exclude_unset=True)
            else:
                fields = {}
        except ValidationError as exc:
            errors.extend(_validation_errors(prefix, exc))
            continue

        operations.append(ChildOperation(action=action, index=index, target_id=target_id, fields=fields))

    if errors:
        raise ValidationFailed("Validation failed", errors)
    return operations


def create_operations(models: Sequence[BaseModel]) -> list[ChildOperation]:
    return [
        ChildOperation(action=ChildAction.CREATE, index=index, fields=model.model_dump(mode="python"))
        for index, model in enumerate(models)
    ]


def snapshot(rows: Sequence[Any]) -> list[dict[str, Any]]:
    captured: list[dict[str, Any]] = []
    for row in rows:
        mapper = inspect(row).mapper
        captured.append({attr.key: getattr(row, attr.key) for attr in mapper.column_attrs})
    return captured


def ensure_targets_exist(
    collection: ChildCollection,
    existing: Sequence[Mapping[str, Any]],
    operations: Sequence[ChildOperation],
) -> None:
    known = {row[collection.id_field] for row in existing}
    for operation in operations:
        if operation.target_id is not None and operation.target_id not in known:
            raise NotFound(
                f"{collection.label} not found",
                [
                    field_error(
                        f"{collection.path(operation.index)}.{collection.id_field}",
                        f"{collection.label} {operation.target_id} does not belong to this record",
                    )
                ],
            )


def simulate(
    collection: ChildCollection,
    existing: Sequence[Mapping[str, Any]],
    operations: Sequence[ChildOperation],
) -> list[dict[str, Any]]:
    state: dict[Any, dict[str, Any]] = {row[collection.id_field]: dict(row) for row in existing}
    pending: list[dict[str, Any]] = []
    for operation in operations:
        if operation.action is ChildAction.DELETE:
            state.pop(operation.target_id, None)
        elif operation.action is ChildAction.UPDATE:
            current = state.get(operation.target_id)
            if current is not None:
                current.update(operation.fields)
        else:
            pending.append({collection.id_field: None, **operation.fields})
    return [*state.values(), *pending]


def _releases_flag(flag: ExclusiveFlag, row: Any, operation: ChildOperation) -> bool:
    return (
        getattr(row, flag.field) == flag.on
        and flag.field in operation.fields
        and operation.fields[flag.field] != flag.on
    )


def write_order(
    collection: ChildCollection,
    rows: Mapping[Any, Any],
    operations: Sequence[ChildOperation],
) -> list[ChildOperation]:
    """Deletes, then updates giving up the exclusive flag, then the rest in payload order."""
    deleted = {operation.target_id for operation in operations if operation.action is ChildAction.DELETE}
    flag = collection.exclusive

    def rank(operation: ChildOperation) -> int:
        if operation.action is ChildAction.DELETE:
            return 0
        row = rows.get(operation.target_id)
        if flag is not None and row is not None and _releases_flag(flag, row, operation):
            return 1
        return 2

    return sorted(
        (
            operation
            for operation in operations
            if not (operation.action is ChildAction.UPDATE and operation.target_id in deleted)
        ),
        key=rank,
    )


def apply_operations(
    session: Session,
    collection: ChildCollection,
    parent_id: uuid.UUID,
    operations: Sequence[ChildOperation],
    budget: TransactionBudget,
) -> CollectionChanges:
    changes = CollectionChanges()
    if not operations:
        return changes

    model = collection.model
    parent_column = getattr(model, collection.parent_field)
    rows = {getattr(row, collection.id_field): row for row in session.scalars(select(model).where(parent_column == parent_id))}

    for operation in write_order(collection, rows, operations):
        budget.check()
        if operation.action is ChildAction.CREATE:
            row = model(**operation.fields, **{collection.parent_field: parent_id})
            session.add(row)
            session.flush()
            changes.created += 1
            continue

        row = rows.get(operation.target_id)
        if row is None:
            raise NotFound("Record to update not found")
        if operation.action is ChildAction.DELETE:
            session.delete(row)
            session.flush()
            rows.pop(operation.target_id, None)
            changes.deleted += 1
        else:
            for key, value in operation.fields.items():
                setattr(row, key, value)
            session.flush()
            changes.updated += 1

    logger.debug(
        "nested.collection_applied",
        extra={"entity_type": collection.name, "entity_id": str(parent_id), "changes": changes.as_dict()},
    )
    observe_child_operations(collection.name, changes.created, changes.updated, changes.deleted)
    return changes


def _outcome(status_code: int) -> str:
    if status_code == 408:
        return "timeout"
    if status_code >= 500:
        return "server_error"
    return "client_error"


@contextmanager
def traced_upsert(parent: str, operation: str) -> Iterator[Any]:
    started = time.perf_counter()
    with tracer.start_as_current_span(f"{parent}.complete_{operation}") as span:
        span.set_attribute("correlation_id", get_correlation_id() or "")
        span.set_attribute("parent", parent)
        try:
            yield span
        except HTTPException as exc:
            outcome = _outcome(exc.status_code)
            span.set_attribute("outcome", outcome)
            observe_nested_upsert(parent, operation, outcome, time.perf_counter() - started)
            raise
        except Exception:
            span.set_attribute("outcome", "server_error")
            observe_nested_upsert(parent, operation, "server_error", time.perf_counter() - started)
            raise
        span.set_attribute("outcome", "success")
        observe_nested_upsert(parent, operation, "success", time.perf_counter() - started)
