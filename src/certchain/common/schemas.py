"""Shared Pydantic schemas for Certchain."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case fields in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "certchain"


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
    hash: Optional[str] = None
    details: Optional[dict[str, Any]] = None
