"""Custom exceptions for aigeek."""

from typing import Any, Optional


class AIGeekError(Exception):
    """Base exception for all aigeek errors."""

    def __init__(
        self,
        message: str,
        *,
        type: Optional[str] = None,
        param: Optional[str] = None,
        code: Optional[str] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.type = type or "aigeek_error"
        self.param = param
        self.code = code
        self.body = body or {}

    def __str__(self) -> str:
        msg = self.message
        if self.type:
            msg = f"{self.type}: {msg}"
        if self.code:
            msg = f"[{self.code}] {msg}"
        return msg


class ConfigurationError(AIGeekError):
    """Provider is unknown, disabled or has no credential configured."""

    def __init__(
        self,
        message: str = "Provider not configured",
        provider: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, type="configuration_error", code="PROVIDER_NOT_CONFIGURED", **kwargs)
        self.provider = provider


class QuotaExceededError(AIGeekError):
    """Admission check failed for a provider/model/caller."""

    def __init__(
        self,
        message: str = "Free tier limit reached",
        usage: Optional[Any] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, type="quota_exceeded", code="QUOTA_EXCEEDED", **kwargs)
        self.usage = usage


class UpstreamError(AIGeekError):
    """A provider call failed (network, timeout or non-success response).

    Upstream errors trigger fallback to the next provider.
    """

    def __init__(
        self,
        message: str = "Upstream provider error",
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("type", "upstream_error")
        kwargs.setdefault("code", str(status_code) if status_code else "UPSTREAM_ERROR")
        super().__init__(message, **kwargs)
        self.provider = provider
        self.status_code = status_code


class AuthenticationError(UpstreamError):
    """Authentication failed (invalid API key, etc.)."""

    def __init__(self, message: str = "Authentication failed", **kwargs: Any) -> None:
        super().__init__(message, type="authentication_error", status_code=401, **kwargs)


class PermissionDeniedError(UpstreamError):
    """Permission denied for the requested resource."""

    def __init__(self, message: str = "Permission denied", **kwargs: Any) -> None:
        super().__init__(message, type="permission_denied", status_code=403, **kwargs)


class NotFoundError(UpstreamError):
    """Requested model or endpoint not found."""

    def __init__(self, message: str = "Resource not found", **kwargs: Any) -> None:
        super().__init__(message, type="not_found", status_code=404, **kwargs)


class RateLimitError(UpstreamError):
    """Upstream rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(message, type="rate_limit_error", status_code=429, **kwargs)
        self.retry_after = retry_after


class BadRequestError(UpstreamError):
    """Invalid request (malformed, missing params, etc.)."""

    def __init__(self, message: str = "Bad request", **kwargs: Any) -> None:
        super().__init__(message, type="invalid_request_error", status_code=400, **kwargs)


class APIConnectionError(UpstreamError):
    """Failed to connect to the API."""

    def __init__(self, message: str = "Connection error", **kwargs: Any) -> None:
        kwargs.setdefault("type", "connection_error")
        kwargs.setdefault("code", "CONNECTION_ERROR")
        super().__init__(message, **kwargs)


class APITimeoutError(APIConnectionError):
    """Request timed out."""

    def __init__(self, message: str = "Request timed out", **kwargs: Any) -> None:
        super().__init__(message, type="timeout_error", code="TIMEOUT", **kwargs)


class ServiceUnavailableError(UpstreamError):
    """Service temporarily unavailable."""

    def __init__(self, message: str = "Service unavailable", **kwargs: Any) -> None:
        super().__init__(message, type="service_unavailable", status_code=503, **kwargs)


class APIError(UpstreamError):
    """Generic API error from the provider."""

    def __init__(self, message: str = "API error", **kwargs: Any) -> None:
        kwargs.setdefault("status_code", 500)
        super().__init__(message, type="api_error", **kwargs)


class AllProvidersFailedError(AIGeekError):
    """Every provider in the fallback order failed."""

    def __init__(
        self,
        message: str = "All AI providers failed",
        attempts: Optional[list[Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, type="all_providers_failed", code="ALL_PROVIDERS_FAILED", **kwargs)
        self.attempts = attempts or []


class MalformedResponseError(AIGeekError):
    """Response text could not be turned into the expected structure."""

    def __init__(
        self,
        message: str = "Invalid AI response format",
        code: str = "PARSE_ERROR",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, type="malformed_response", code=code, **kwargs)


class NotReadyError(AIGeekError):
    """Orchestrator used before initialization completed."""

    def __init__(self, message: str = "Orchestrator is not initialized", **kwargs: Any) -> None:
        super().__init__(message, type="not_ready", code="NOT_READY", **kwargs)


def map_http_status_to_error(
    status_code: int,
    message: str,
    body: Optional[dict] = None,
    provider: Optional[str] = None,
) -> UpstreamError:
    """Map HTTP status code to appropriate exception."""
    error_map = {
        400: BadRequestError,
        401: AuthenticationError,
        403: PermissionDeniedError,
        404: NotFoundError,
        429: RateLimitError,
        503: ServiceUnavailableError,
        504: APITimeoutError,
    }

    error_class = error_map.get(status_code)
    if error_class is None:
        return APIError(message, status_code=status_code, body=body, provider=provider)
    return error_class(message, body=body, provider=provider)
