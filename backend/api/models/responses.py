"""
Pydantic response models for API endpoints.
"""
from pydantic import BaseModel, Field
from typing import Optional, Any, Literal


class ApiResponse(BaseModel):
    """Envelope for every successful response."""
    status: Literal["success"] = "success"
    message: Optional[str] = Field(default=None, description="Set on mutations")
    data: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Envelope for every failed response."""
    status: Literal["error"] = "error"
    message: str
    detail: Optional[str] = Field(default=None, description="Development mode only")
    type: Optional[str] = Field(default=None, description="Development mode only")


def success(data: Any = None, message: Optional[str] = None) -> ApiResponse:
    return ApiResponse(data=data, message=message)
