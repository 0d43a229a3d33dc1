"""Pagination helper for in-memory result lists."""

from __future__ import annotations

from typing import Any, Dict, Sequence


def paginate(items: Sequence[Any], page: int = 1, per_page: int = 20) -> Dict[str, Any]:
    page = max(page, 1)
    per_page = max(min(per_page, 100), 1)
    start = (page - 1) * per_page
    return {
        "items": list(items[start : start + per_page]),
        "page": page,
        "per_page": per_page,
        "total": len(items),
    }
