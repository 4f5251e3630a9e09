"""Page arithmetic shared by the file search and any other paged listing."""

from __future__ import annotations

import math
from typing import Optional

from rockimages_shared.schemas.common import Pagination


def normalize_per_page(per_page: Optional[int], default: int, maximum: int) -> int:
    """Non-positive or missing sizes fall back to ``default``; large ones are capped."""
    if per_page is None or per_page < 1:
        return default
    return min(per_page, maximum)


def paginate(total: int, page: Optional[int], per_page: int) -> Pagination:
    """Clamp ``page`` into ``[1, total_pages]``; an empty result still has one page."""
    total_pages = max(1, math.ceil(total / per_page))
    current = page if page is not None and page >= 1 else 1
    current = min(current, total_pages)
    return Pagination(page=current, per_page=per_page, total=total, total_pages=total_pages)


def page_offset(pagination: Pagination) -> int:
    return (pagination.page - 1) * pagination.per_page
