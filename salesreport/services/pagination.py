from __future__ import annotations

import math
from typing import Any, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from salesreport.schemas import PageMeta


def page_meta(*, page: int, limit: int, total_count: int) -> PageMeta:
    return PageMeta(
        current_page=page,
        total_pages=math.ceil(total_count / limit) if limit else 0,
        total_count=total_count,
        limit=limit,
    )


def paginate(
    db: Session,
    stmt: Select,
    *,
    page: int,
    limit: int,
    options: Sequence[Any] = (),
) -> tuple[list[Any], PageMeta]:
    """Count the filtered rows, then load one page with the given loader options."""
    total_count = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    page_stmt = stmt.offset((page - 1) * limit).limit(limit)
    if options:
        page_stmt = page_stmt.options(*options)
    items = list(db.scalars(page_stmt).all())
    return items, page_meta(page=page, limit=limit, total_count=total_count)
