"""
Pagination Utility Module

Provides standardized pagination helpers for all API endpoints.
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

MAX_PAGE_SIZE = 100


def normalize(page: int, limit: int, max_limit: int = MAX_PAGE_SIZE) -> Tuple[int, int]:
    """Clamp page to >= 1 and limit to 1..max_limit"""
    return max(1, page), max(1, min(max_limit, limit))


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination block returned alongside list payloads"""
    total_pages = (total + limit - 1) // limit if total > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "totalCount": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def paginate_list(items: List[Any], page: int, limit: int) -> Tuple[List[Any], Dict[str, Any]]:
    """Paginate an already materialized (e.g. score-sorted) list"""
    page, limit = normalize(page, limit)
    offset = (page - 1) * limit
    return items[offset:offset + limit], pagination_meta(page, limit, len(items))


async def paginate(
    db: AsyncSession,
    query: Select,
    page: int = 1,
    limit: int = 20,
    count_query: Optional[Select] = None,
    max_limit: int = MAX_PAGE_SIZE,
) -> Tuple[List[Any], Dict[str, Any]]:
    """
    Apply pagination to a SQLAlchemy query.

    Returns:
        (items, pagination) where pagination is the block built by pagination_meta
    """
    page, limit = normalize(page, limit, max_limit)

    if count_query is None:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.offset((page - 1) * limit).limit(limit))
    items = list(result.scalars().unique().all())

    return items, pagination_meta(page, limit, total)
