"""Common type definitions shared across the engine."""

from typing import Any, Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Error detail information."""

    message: str
    type: Optional[str] = None
    param: Optional[str] = None
    code: Optional[str] = None
    details: Optional[str] = None


class ServiceResponse(BaseModel):
    """Structured success/error payload returned across the engine boundary."""

    success: bool
    data: Any = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResponse":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        message: str,
        code: Optional[str] = None,
        type: Optional[str] = None,
        details: Optional[str] = None,
        data: Any = None,
    ) -> "ServiceResponse":
        return cls(
            success=False,
            data=data,
            error=ErrorDetail(message=message, code=code, type=type, details=details),
        )
