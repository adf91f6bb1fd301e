from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None
    message: str | None = None


class Pagination(BaseModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    total_pages: int = Field(ge=0, alias="totalPages")

    class Config:
        populate_by_name = True


class Page(BaseModel, Generic[T]):
    items: list[T]
    pagination: Pagination


class StatusBreakdown(BaseModel):
    total_applications: int
    applications_by_status: dict[str, int]


def pagination_of(result) -> Pagination:
    return Pagination(page=result.page, limit=result.limit, total=result.total, total_pages=result.total_pages)


def page_payload(result, schema: type[BaseModel]) -> dict[str, Any]:
    """Render a ``services.listing.PageResult`` with ``schema`` for each item."""

    return {
        "items": [schema.model_validate(item) for item in result.items],
        "pagination": pagination_of(result),
    }


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "data": data, "message": message}
