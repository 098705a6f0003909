"""Pydantic models for HTTP API responses and status reports."""

from typing import Optional
from pydantic import BaseModel, Field

from flasher.models.status import ErrorCode, Step


class SessionSnapshot(BaseModel):
    """Published session fields at one point in time."""

    step: Step = Field(..., description="Current session step (0-7)")
    message: str = Field(..., description="Human-readable status description")
    progress: float = Field(
        ..., ge=-1, le=1, description="Fraction of the current phase, -1 when halted"
    )
    error: ErrorCode = Field(..., description="Error code, 0 (NONE) when healthy")
    connected: bool = Field(..., description="Device connected and recognized")
    serial: Optional[str] = Field(None, description="Serial of the connected device")
    can_continue: bool = Field(
        default=False, description="A continue prompt is armed (POST /continue)"
    )
    can_retry: bool = Field(
        default=False, description="Retry is armed (POST /retry)"
    )


class ProgressResponse(BaseModel):
    """GET /api/v1.0/progress response.

    Returns current session state with application-level status code.
    """

    code: int = Field(..., description="Application-level status code (200/500)")
    msg: str = Field(..., description="Status message or error description")
    data: SessionSnapshot = Field(..., description="Session state")


class SuccessResponse(BaseModel):
    """Success response for command endpoints.

    Used by POST /continue and POST /retry when the hook was invoked.
    """

    code: int = Field(default=200, description="Application-level status code (200)")
    msg: str = Field(default="success", description="Success message")
    data: Optional[dict] = Field(None, description="Optional response data")


class ErrorResponse(BaseModel):
    """Error response for command endpoints.

    HTTP status code is always 200, real status in 'code' field.
    """

    code: int = Field(..., description="Application-level error code (409)")
    msg: str = Field(..., description="Error message")
    step: Optional[Step] = Field(None, description="Current step")
    error: Optional[ErrorCode] = Field(None, description="Current error code")


class ReportPayload(BaseModel):
    """Payload POSTed to the configured report URL.

    Sent on every step and error change.
    """

    step: Step = Field(..., description="Current session step")
    step_name: str = Field(..., description="Step name (e.g., 'FLASHING')")
    error: ErrorCode = Field(..., description="Current error code")
    error_name: str = Field(..., description="Error name (e.g., 'NONE')")
    progress: float = Field(..., ge=-1, le=1, description="Phase progress")
    message: str = Field(..., description="Human-readable status description")
    serial: Optional[str] = Field(None, description="Serial of the connected device")
