from pydantic import BaseModel, Field
from typing import Generic, TypeVar, Optional, Any, Dict

DataType = TypeVar("DataType")

class APIResponse(BaseModel, Generic[DataType]):
    """Success envelope shared by the attempt and analytics routes."""
    message: str = Field(..., description="Short summary, e.g. 'Attempt evaluated successfully'.")
    data: Optional[DataType] = Field(None, description="Evaluation, statistics or analytics payload.")

class ErrorInfo(BaseModel):
    code: str = Field(..., description="Stable code such as NOT_FOUND, VALIDATION_ERROR or SERVICE_UNAVAILABLE.")
    message: str = Field(..., description="Reason the attempt or analytics request was refused.")
    details: Optional[Dict[str, Any]] = Field(
        None, description="Validation errors or the grading error type; absent for plain HTTP errors."
    )

class ErrorResponse(BaseModel):
    """Failure envelope written by the handlers in gradebook.middleware.exceptions."""
    error: ErrorInfo
    timestamp: str = Field(..., description="UTC time the request failed, ISO 8601.")
    path: str = Field(..., description="Route that failed, e.g. /attempts/12/submit.")
    request_id: str = Field(..., description="Same value as the X-Request-ID response header.")
