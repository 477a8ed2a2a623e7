"""Generic API response schemas"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Any, Dict
from datetime import datetime


def _utcnow_iso() -> str:
    return datetime.utcnow().isoformat()


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class APIResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str
    data: Optional[Any] = None


class Pagination(CamelModel):
    total: int
    page: int
    limit: int
    pages: int


class PaginatedResponse(APIResponse):
    """Success response carrying one page of results"""
    pagination: Pagination


class ErrorResponse(BaseModel):
    """Generic API error response"""
    success: bool = False
    message: str
    details: Optional[Any] = None
    path: Optional[str] = None
    timestamp: str = Field(default_factory=_utcnow_iso)


class HealthResponse(BaseModel):
    """Health check response"""
    success: bool
    message: str
    timestamp: str
    environment: str
    version: str
    readiness: Dict[str, Any]
