"""Together.ai provider implementation."""

from typing import Any

from aigeek.providers.openai import OpenAIProvider
from aigeek.providers.registry import register_provider
from aigeek.types import CatalogEntry


@register_provider("together")
class TogetherProvider(OpenAIProvider):
    """Together.ai provider (OpenAI-compatible chat completions).

    The model listing endpoint returns a bare JSON array and includes
    non-chat models, which are filtered out.
    """

    provider_name = "together"
    default_api_base = "https://api.together.xyz/v1"
    static_models = [
        "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free",
        "meta-llama/Llama-Vision-Free",
        "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free",
        "lgai/exaone-deep-32b",
        "lgai/exaone-3-5-32b-instruct",
    ]

    def parse_model_list(self, data: Any) -> list[CatalogEntry]:
        items = data.get("data") if isinstance(data, dict) else data
        entries = []
        for item in self._as_list(items, "model list"):
            if not isinstance(item, dict) or not item.get("id"):
                continue
            if item.get("type") not in (None, "chat"):
                continue
            entries.append(CatalogEntry(
                id=str(item["id"]),
                display_name=str(item.get("display_name") or item["id"]),
            ))
        return entries
