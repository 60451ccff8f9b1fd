"""Anthropic Claude provider adapter."""

from typing import Any, Optional

from aigeek.types import CatalogEntry, ProviderRequest, ProviderResponse

from .base import BaseProvider
from .registry import register_provider


@register_provider("anthropic")
class AnthropicProvider(BaseProvider):
    """Anthropic Messages API adapter."""

    provider_name = "anthropic"
    default_api_base = "https://api.anthropic.com/v1"
    api_version = "2023-06-01"
    static_models = [
        "claude-opus-4-1-20250805",
        "claude-opus-4-20250514",
        "claude-sonnet-4-20250514",
        "claude-3-7-sonnet-20250219",
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
        "claude-3-haiku-20240307",
    ]

    def get_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "Content-Type": "application/json",
            "anthropic-version": self.api_version,
        }

    async def send(self, request: ProviderRequest, api_key: Optional[str] = None) -> ProviderResponse:
        """Execute a messages request."""
        data = await self._request(
            "POST",
            "/messages",
            api_key=api_key,
            json=self.transform_request(request),
        )
        return self.transform_response(data, request.model)

    async def list_models(self, api_key: Optional[str] = None) -> list[CatalogEntry]:
        data = self._as_object(await self._request("GET", "/models", api_key=api_key, params={"limit": 100}))
        return [
            CatalogEntry(id=str(item["id"]), display_name=str(item.get("display_name") or item["id"]))
            for item in self._as_list(data.get("data"), "model list")
            if isinstance(item, dict) and item.get("id")
        ]

    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        """Transform to Anthropic format."""
        return {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }

    def transform_response(self, response: dict[str, Any], model: str) -> ProviderResponse:
        """Concatenate text blocks and read usage."""
        response = self._as_object(response)
        blocks = response.get("content")
        if not isinstance(blocks, list):
            raise self._malformed("response has no content blocks")

        parts = []
        for block in blocks:
            block = self._as_object(block, "content block")
            if block.get("type") != "text":
                continue
            text = block.get("text", "")
            if not isinstance(text, str):
                raise self._malformed("text block is not text")
            parts.append(text)

        input_tokens, output_tokens = self._token_counts(response.get("usage"), "input_tokens", "output_tokens")
        return ProviderResponse(
            text="".join(parts),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=str(response.get("model") or model),
        )
