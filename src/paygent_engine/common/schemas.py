"""Shared Pydantic schemas for Paygent-Engine."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "paygent-engine"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: str = ""


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
