"""Shared pydantic building blocks — camelCase wire format and envelopes."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serialises as camelCase; accepts both camelCase and snake_case input."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    message: str
    data: T


class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(CamelModel, Generic[T]):
    success: bool = True
    message: str
    data: list[T]
    pagination: PaginationMeta


def paginate_meta(page: int, limit: int, total: int) -> PaginationMeta:
    return PaginationMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=(total + limit - 1) // limit if limit else 0,
    )


class DeleteResponse(CamelModel):
    success: bool
    message: str


class LogoutResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    db: bool
    redis: bool


class StatusResponse(CamelModel):
    total_users: int
    active_users: int
    today_access_count: int
    status: str
