from __future__ import annotations

from typing import Any, Optional, Sequence


def parse_page_int(raw: Optional[str], default: int) -> int:
    """Lenient positive int parsing for query strings; junk and values < 1 yield ``default``."""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value >= 1 else default


def paginate(items: Sequence[Any], *, current_page: int, page_size: int) -> dict[str, Any]:
    start = (current_page - 1) * page_size
    return {
        "list": list(items[start:start + page_size]),
        "pagination": {"current": current_page, "pageSize": page_size, "total": len(items)},
    }
