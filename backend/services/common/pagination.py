"""
Offset pagination helpers.
"""
import math
from typing import Any, Dict, List, Sequence, Tuple

from core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


def normalize_page(page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[int, int, int]:
    """Clamp page/limit and return (page, limit, skip)."""
    page = max(1, int(page or 1))
    limit = min(MAX_PAGE_SIZE, max(1, int(limit or DEFAULT_PAGE_SIZE)))
    return page, limit, (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int, returned: int) -> Dict[str, Any]:
    skip = (page - 1) * limit
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "has_more": skip + returned < total,
    }


def paginate_list(items: Sequence[Any], page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[List[Any], Dict[str, Any]]:
    """Page through an already loaded list (notes, bookmarks, ratings)."""
    page, limit, skip = normalize_page(page, limit)
    window = list(items[skip:skip + limit])
    return window, pagination_meta(page, limit, len(items), len(window))
