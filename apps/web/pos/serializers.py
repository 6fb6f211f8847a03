"""
Pydantic schemas for the POS staff API.

Request bodies and query strings are validated with these before any POS
call is made.
"""

from pydantic import BaseModel, Field

# =============================================================================
# Requests
# =============================================================================


class SyncMenuRequest(BaseModel):
    """POST /pos/{vendor}/sync-menu"""

    location_id: int
    full: bool = True


class OrderActionRequest(BaseModel):
    """POST /pos/{vendor}/send-order and /pos/{vendor}/cancel-order"""

    order_id: int


class AvailabilityRequest(BaseModel):
    """POST /pos/{vendor}/availability"""

    item_id: int
    is_available: bool


class RetryFailedRequest(BaseModel):
    """POST /pos/{vendor}/retry-failed"""

    batch_size: int = Field(default=10, ge=1, le=100)


class LocationQuery(BaseModel):
    """Query string for GET endpoints scoped to one location."""

    location_id: int


class OptionalLocationQuery(BaseModel):
    location_id: int | None = None


class SyncHistoryQuery(BaseModel):
    """GET /pos/{vendor}/sync-history"""

    location_id: int
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


# =============================================================================
# Errors
# =============================================================================


class ValidationErrorDetail(BaseModel):
    """Single field validation error."""

    field: str
    message: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: list[ValidationErrorDetail] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error envelope returned by every POS endpoint."""

    error: ErrorBody
