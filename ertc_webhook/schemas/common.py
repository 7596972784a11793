"""Shared response envelope and error schema."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads exposed over the API; fields serialize as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorDetail(BaseModel):
    """Structured error returned when an endpoint fails."""

    error_code: str
    message: str
    hint: str | None = None


class Meta(BaseModel):
    """Execution metadata attached to every response."""

    execution_ms: float = Field(..., description="Wall-clock milliseconds")
    row_count: int | None = Field(None, description="Number of rows returned")


class ApiResponse(BaseModel):
    """Standard envelope for every JSON endpoint."""

    endpoint: str
    ok: bool
    data: Any | None = None
    error: ErrorDetail | None = None
    meta: Meta
