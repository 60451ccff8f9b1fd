"""OpenAI-compatible provider adapter."""

from typing import Any, Optional

from aigeek.types import CatalogEntry, ProviderRequest, ProviderResponse

from .base import BaseProvider
from .registry import register_provider


@register_provider("openai")
class OpenAIProvider(BaseProvider):
    """OpenAI chat-completions adapter.

    Also the base for providers exposing the same wire format
    (Groq, Together).
    """

    provider_name = "openai"
    default_api_base = "https://api.openai.com/v1"
    static_models = ["gpt-4o", "gpt-4o-mini"]

    async def send(self, request: ProviderRequest, api_key: Optional[str] = None) -> ProviderResponse:
        """Execute a chat completion request."""
        data = await self._request(
            "POST",
            "/chat/completions",
            api_key=api_key,
            json=self.transform_request(request),
        )
        return self.transform_response(data, request.model)

    async def list_models(self, api_key: Optional[str] = None) -> list[CatalogEntry]:
        """List models from ``GET /models``."""
        data = await self._request("GET", "/models", api_key=api_key)
        return self.parse_model_list(data)

    def parse_model_list(self, data: Any) -> list[CatalogEntry]:
        items = data.get("data") if isinstance(data, dict) else data
        entries = []
        for item in self._as_list(items, "model list"):
            if not isinstance(item, dict) or not item.get("id"):
                continue
            entries.append(CatalogEntry(
                id=str(item["id"]),
                display_name=str(item.get("display_name") or item["id"]),
            ))
        return entries

    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        """Transform to OpenAI request format."""
        return {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }

    def transform_response(self, response: dict[str, Any], model: str) -> ProviderResponse:
        """Extract the first choice text and usage counts."""
        response = self._as_object(response)
        try:
            text = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed("response has no message content")
        if text is not None and not isinstance(text, str):
            raise self._malformed("message content is not text")

        input_tokens, output_tokens = self._token_counts(
            response.get("usage"), "prompt_tokens", "completion_tokens"
        )
        return ProviderResponse(
            text=text or "",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=str(response.get("model") or model),
        )
