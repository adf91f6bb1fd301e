from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import String, cast, func, or_, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from core.errors import ValidationError


DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class PageResult:
    items: list[Any]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total, self.limit)


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        raise ValueError("limit must be positive")
    return math.ceil(total / limit)


def paginate(db: Session, stmt, *, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT) -> PageResult:
    """Run ``stmt`` for one 1-indexed page; a page past the end is empty but keeps the totals."""

    if page < 1:
        raise ValidationError("page must be >= 1", code="INVALID_PAGE")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}", code="INVALID_LIMIT")

    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = int(db.execute(count_stmt).scalar_one())
    items = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()
    return PageResult(items=list(items), page=page, limit=limit, total=total)


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def text_search(term: str, *columns):
    """Case-insensitive substring match of ``term`` against any of ``columns``."""

    pattern = f"%{escape_like(term.strip())}%"
    return or_(*(col.ilike(pattern, escape="\\") for col in columns))


def tag_contains(db: Session, column, tag: str):
    """Match rows whose JSON string array ``column`` contains ``tag``."""

    tag = tag.strip()
    if db.get_bind().dialect.name == "postgresql":
        return type_coerce(column, JSONB).contains([tag])
    # JSON text elsewhere: look for the quoted element.
    pattern = f"%{escape_like(json.dumps(tag))}%"
    return cast(column, String).like(pattern, escape="\\")


def count_by(db: Session, column, *criteria) -> dict[str, int]:
    stmt = select(column, func.count()).group_by(column)
    for c in criteria:
        stmt = stmt.where(c)
    out: dict[str, int] = {}
    for key, count in db.execute(stmt).all():
        label = getattr(key, "value", key)
        out[str(label)] = int(count)
    return out
