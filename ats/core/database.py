from __future__ import annotations

import logging
import time
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from ats.core.config import get_settings
from ats.core.errors import InternalError, RequestTimeout, map_store_error


logger = logging.getLogger("ats.database")


class Base(DeclarativeBase):
    pass


def _build_engine() -> Engine:
    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        return create_engine(
            settings.database_url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        settings.database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_timeout=settings.transaction_max_wait_seconds,
    )


engine = _build_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@dataclass(slots=True)
class TransactionBudget:
    """Deadline for one bounded transaction, measured on the monotonic clock."""

    timeout_seconds: float
    started_at: float = field(default_factory=time.monotonic)

    @property
    def deadline(self) -> float:
        return self.started_at + self.timeout_seconds

    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.started_at) * 1000, 2)

    def remaining_seconds(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        if time.monotonic() >= self.deadline:
            raise RequestTimeout("Transaction timeout - please try again")


@contextmanager
def bounded_transaction(
    session: Session,
    *,
    max_wait_seconds: float | None = None,
    timeout_seconds: float | None = None,
) -> Iterator[TransactionBudget]:
    """Run the enclosed writes atomically within a wait bound and a total run bound.

    Commits on a clean exit. Any failure rolls back and is re-raised as an envelope error.
    """
    settings = get_settings()
    max_wait = settings.transaction_max_wait_seconds if max_wait_seconds is None else max_wait_seconds
    timeout = settings.transaction_timeout_seconds if timeout_seconds is None else timeout_seconds

    requested_at = time.monotonic()
    try:
        connection = session.connection()
        if time.monotonic() - requested_at > max_wait:
            raise RequestTimeout("Transaction timeout - please try again")

        budget = TransactionBudget(timeout_seconds=timeout)
        if connection.dialect.name == "postgresql":
            timeout_ms = max(1, int(timeout * 1000))
            session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

        yield budget
        budget.check()
        session.commit()
    except Exception as exc:
        session.rollback()
        mapped = map_store_error(exc)
        if mapped is not exc:
            if isinstance(mapped, InternalError):
                logger.exception("transaction.failed", extra={"error": str(exc)})
            else:
                logger.warning("transaction.rolled_back", extra={"error": str(exc)})
            raise mapped from exc
        raise
