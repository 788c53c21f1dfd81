from ats.platform.crud import CrudService
from ats.platform.nested import (
    ACTION_KEY,
    ChildAction,
    ChildCollection,
    ChildOperation,
    CollectionChanges,
    ExclusiveFlag,
    apply_operations,
    create_operations,
    ensure_targets_exist,
    resolve_operations,
    simulate,
    snapshot,
    traced_upsert,
    write_order,
)
from ats.platform.pagination import PageRequest, page_payload, paging, resolve_page
from ats.platform.routing import add_crud_routes, add_lookup_route

__all__ = [
    "ACTION_KEY",
    "ChildAction",
    "ChildCollection",
    "ChildOperation",
    "CollectionChanges",
    "CrudService",
    "ExclusiveFlag",
    "PageRequest",
    "add_crud_routes",
    "add_lookup_route",
    "apply_operations",
    "create_operations",
    "ensure_targets_exist",
    "page_payload",
    "paging",
    "resolve_operations",
    "resolve_page",
    "simulate",
    "snapshot",
    "traced_upsert",
    "write_order",
]
