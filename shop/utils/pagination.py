import math
from typing import Tuple


def normalize_paging(page: int, limit: int, max_limit: int = 100) -> Tuple[int, int]:
    p = page if page and page > 0 else 1
    size = limit if limit and limit > 0 else 10
    return p, min(size, max_limit)


def page_meta(total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
