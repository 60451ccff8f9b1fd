"""Base provider interface for aigeek."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from aigeek.exceptions import (
    APIConnectionError,
    APITimeoutError,
    AuthenticationError,
    MalformedResponseError,
    RateLimitError,
    map_http_status_to_error,
)
from aigeek.types import CatalogEntry, ProviderRequest, ProviderResponse


class BaseProvider(ABC):
    """Base class for all LLM provider adapters.

    An adapter turns a single-prompt ``ProviderRequest`` into the
    provider's wire format, performs the HTTP call and normalizes the
    reply (text plus input/output token counts).
    """

    provider_name: str = ""
    default_api_base: str = ""
    # Used when the provider cannot list its models
    static_models: list[str] = []

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: API key for the provider
            api_base: Optional custom API base URL
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used to stub the network)
        """
        self.api_key = api_key
        self.api_base = api_base or self.default_api_base
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    async def send(self, request: ProviderRequest, api_key: Optional[str] = None) -> ProviderResponse:
        """Send one prompt and return the normalized reply.

        Args:
            request: The normalized request
            api_key: Optional API key override

        Returns:
            Normalized provider response

        Raises:
            UpstreamError: On transport failure or non-success status
            MalformedResponseError: When the payload lacks the expected fields
        """

    async def list_models(self, api_key: Optional[str] = None) -> list[CatalogEntry]:
        """List the models the provider currently offers.

        Raises:
            NotImplementedError: If the provider has no listing endpoint
        """
        raise NotImplementedError(f"Provider {self.provider_name} does not support model listing")

    def get_static_models(self) -> list[CatalogEntry]:
        """Fallback catalog when discovery is unsupported or fails."""
        return [CatalogEntry(id=model_id, display_name=model_id) for model_id in self.static_models]

    @abstractmethod
    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        """Transform a normalized request to the provider body."""

    @abstractmethod
    def transform_response(self, response: dict[str, Any], model: str) -> ProviderResponse:
        """Transform the provider body to a normalized response."""

    def get_headers(self, api_key: str) -> dict[str, str]:
        """Get authentication headers.

        Args:
            api_key: Resolved API key

        Returns:
            Headers dictionary
        """
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _require_key(self, api_key: Optional[str] = None) -> str:
        key = api_key or self.api_key
        if not key:
            raise AuthenticationError(
                f"{self.provider_name} API key is required",
                provider=self.provider_name,
            )
        return key

    def _get_client(self, api_key: Optional[str] = None) -> httpx.AsyncClient:
        """Get configured HTTP client."""
        key = self._require_key(api_key)
        return httpx.AsyncClient(
            base_url=self.api_base,
            headers=self.get_headers(key),
            timeout=self.timeout,
            transport=self.transport,
        )

    def _malformed(self, detail: str) -> MalformedResponseError:
        return MalformedResponseError(
            f"{self.provider_name} {detail}",
            code="MALFORMED_PROVIDER_RESPONSE",
        )

    def _as_object(self, value: Any, what: str = "response") -> dict[str, Any]:
        """Return ``value`` if it is a JSON object, else raise MalformedResponseError."""
        if not isinstance(value, dict):
            raise self._malformed(f"{what} is not a JSON object")
        return value

    def _as_list(self, value: Any, what: str) -> list[Any]:
        """A missing list reads as empty; anything else that is not a list is malformed."""
        if value is None:
            return []
        if not isinstance(value, list):
            raise self._malformed(f"{what} is not a list")
        return value

    def _token_counts(self, usage: Any, input_key: str, output_key: str) -> tuple[int, int]:
        """Read (input, output) token counts; absent usage counts as zero."""
        if usage is None:
            return 0, 0
        usage = self._as_object(usage, "usage")
        counts = []
        for key in (input_key, output_key):
            value = usage.get(key)
            if value is None:
                value = 0
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise self._malformed(f"usage field {key} is not a token count")
            counts.append(value)
        return counts[0], counts[1]

    def _error_message(self, body: Any, default: str) -> str:
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return error.get("message", default)
            if isinstance(error, str):
                return error
        return default

    def _handle_error(self, exc: httpx.HTTPStatusError) -> None:
        """Handle HTTP errors."""
        status_code = exc.response.status_code

        try:
            body = exc.response.json()
        except ValueError:
            body = None
        message = self._error_message(body, str(exc))

        # Check for rate limit with retry-after
        if status_code == 429:
            retry_after = exc.response.headers.get("retry-after")
            raise RateLimitError(
                message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                body=body if isinstance(body, dict) else None,
                provider=self.provider_name,
            )

        raise map_http_status_to_error(
            status_code,
            message,
            body if isinstance(body, dict) else None,
            provider=self.provider_name,
        )

    async def _request(
        self,
        method: str,
        url: str,
        api_key: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Perform one HTTP request and return the decoded JSON body."""
        client = self._get_client(api_key)
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            self._handle_error(e)
        except httpx.TimeoutException as e:
            raise APITimeoutError(str(e) or "Request timed out", provider=self.provider_name)
        except httpx.TransportError as e:
            raise APIConnectionError(str(e) or "Connection error", provider=self.provider_name)
        except ValueError as e:
            raise self._malformed(f"returned a non-JSON body: {e}")
        finally:
            await client.aclose()
