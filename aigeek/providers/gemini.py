"""Google Gemini (AI Studio) provider implementation."""

from typing import Any, Optional

import httpx

from aigeek.exceptions import AuthenticationError
from aigeek.types import CatalogEntry, ProviderRequest, ProviderResponse

from .base import BaseProvider
from .registry import register_provider


@register_provider("gemini")
class GeminiProvider(BaseProvider):
    """Google Gemini provider.

    Authenticates with an API key passed as the ``key`` query parameter.
    """

    provider_name = "gemini"
    default_api_base = "https://generativelanguage.googleapis.com/v1beta"
    static_models = [
        "gemini-1.5-flash",
        "gemini-1.5-pro",
        "gemini-pro",
    ]

    def get_headers(self, api_key: str) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def _get_model_name(self, model: str) -> str:
        """Strip the ``models/`` resource prefix used by the listing endpoint."""
        if model.startswith("models/"):
            return model[7:]
        return model

    async def send(self, request: ProviderRequest, api_key: Optional[str] = None) -> ProviderResponse:
        """Execute a generateContent request."""
        key = self._require_key(api_key)
        data = await self._request(
            "POST",
            f"/models/{self._get_model_name(request.model)}:generateContent",
            api_key=key,
            params={"key": key},
            json=self.transform_request(request),
        )
        return self.transform_response(data, request.model)

    async def list_models(self, api_key: Optional[str] = None) -> list[CatalogEntry]:
        """List models that support ``generateContent``."""
        key = self._require_key(api_key)
        data = self._as_object(await self._request("GET", "/models", api_key=key, params={"key": key}))
        entries = []
        for item in self._as_list(data.get("models"), "model list"):
            if not isinstance(item, dict):
                continue
            methods = item.get("supportedGenerationMethods")
            if methods is not None and (not isinstance(methods, list) or "generateContent" not in methods):
                continue
            name = item.get("name")
            model_id = self._get_model_name(name) if isinstance(name, str) else ""
            if not model_id:
                continue
            entries.append(CatalogEntry(id=model_id, display_name=str(item.get("displayName") or model_id)))
        return entries

    def transform_request(self, request: ProviderRequest) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "maxOutputTokens": request.max_tokens,
                "temperature": request.temperature,
            },
        }

    def transform_response(self, response: dict[str, Any], model: str) -> ProviderResponse:
        """Transform Gemini response.

        Args:
            response: Gemini response data
            model: Requested model id

        Returns:
            Normalized response
        """
        response = self._as_object(response)
        candidates = self._as_list(response.get("candidates"), "candidates")
        if not candidates:
            raise self._malformed("response has no candidates")

        candidate = self._as_object(candidates[0], "candidate")
        content = self._as_object(candidate.get("content") or {}, "candidate content")
        texts = []
        for part in self._as_list(content.get("parts"), "content parts"):
            part = self._as_object(part, "content part")
            if "text" not in part:
                continue
            if not isinstance(part["text"], str):
                raise self._malformed("content part text is not text")
            texts.append(part["text"])

        input_tokens, output_tokens = self._token_counts(
            response.get("usageMetadata"), "promptTokenCount", "candidatesTokenCount"
        )
        return ProviderResponse(
            text="".join(texts),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model,
        )

    def _handle_error(self, exc: httpx.HTTPStatusError) -> None:
        """Handle Gemini-specific errors.

        Gemini reports an invalid key as 400 rather than 401.
        """
        if exc.response.status_code == 400:
            try:
                body = exc.response.json()
            except ValueError:
                body = None
            message = self._error_message(body, str(exc))
            if "API key not valid" in message:
                raise AuthenticationError(
                    f"Invalid Gemini API key: {message}",
                    provider=self.provider_name,
                )
        super()._handle_error(exc)
