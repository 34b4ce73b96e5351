"""
Common Pydantic schemas for API responses.
Provides base classes and the goal payload returned by sync endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from stacksave.models.base import utc_now


class APIResponse(BaseModel):
    """Base API response model."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


class SuccessResponse(APIResponse):
    """Success response model."""
    data: Optional[Any] = None


class ErrorResponse(APIResponse):
    """Error response model."""
    success: bool = False
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthCheckResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=utc_now)
    version: str = "0.1.0"
    services: Dict[str, str] = Field(
        default_factory=lambda: {
            "database": "healthy",
            "listener": "listening",
        }
    )


class GoalResponse(BaseModel):
    """Mirrored goal as returned by sync endpoints."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str = ""
    owner: str
    currency: str
    mode: int
    target_amount: Decimal
    duration: int
    donation_percentage: int
    deposited_amount: Decimal
    current_value: Decimal
    yield_earned: Decimal
    status: int
    status_text: str
    progress_percentage: float
    current_streak: int
    longest_streak: int
    last_deposit_time: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None

    @field_serializer("target_amount", "deposited_amount", "current_value", "yield_earned")
    def serialize_amount(self, value: Decimal) -> str:
        # wei amounts exceed float precision
        return str(int(value))


def create_success_response(data: Any = None, message: Optional[str] = None) -> SuccessResponse:
    """Create a success response."""
    return SuccessResponse(data=data, message=message)


def create_error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> ErrorResponse:
    """Create an error response."""
    return ErrorResponse(
        message=message,
        error_code=error_code,
        details=details
    )
