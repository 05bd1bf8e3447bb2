"""Offset pagination over SQLAlchemy selects."""

import math
from typing import Any, List, Tuple

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


async def paginate(
    db: AsyncSession,
    stmt: Select,
    page: int,
    per_page: int,
    scalars: bool = True,
) -> Tuple[List[Any], dict]:
    """
    Runs `stmt` for one page and returns (rows, meta).

    meta holds current_page, last_page, per_page and total; callers add `data`.
    """
    page = max(page, 1)
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()

    result = await db.execute(stmt.limit(per_page).offset((page - 1) * per_page))
    rows = list(result.scalars().all()) if scalars else list(result.all())

    meta = {
        "current_page": page,
        "last_page": max(1, math.ceil(total / per_page)),
        "per_page": per_page,
        "total": total,
    }
    return rows, meta
