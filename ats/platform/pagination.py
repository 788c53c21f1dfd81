from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _parse_int(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def resolve_page(page: Any, limit: Any, *, default_limit: int = 10, max_limit: int = 100) -> PageRequest:
    """Clamp raw query values: page to >= 1, limit to [1, max_limit]; unparsable values take the defaults."""
    parsed_page = _parse_int(page) or 1
    parsed_limit = _parse_int(limit) or default_limit
    return PageRequest(page=max(1, parsed_page), limit=min(max_limit, max(1, parsed_limit)))


def paging(total: int, request: PageRequest) -> dict[str, int]:
    return {
        "total": total,
        "page": request.page,
        "limit": request.limit,
        "totalPages": math.ceil(total / request.limit),
    }


def page_payload(rows: list[Any], total: int, request: PageRequest) -> dict[str, Any]:
    return {"data": rows, "paging": paging(total, request)}
