"""Provider adapters for aigeek."""

from .base import BaseProvider
from .registry import AdapterRegistry, register_provider, get_provider

# Import providers to auto-register them
from .openai import OpenAIProvider
from .anthropic import AnthropicProvider
from .gemini import GeminiProvider
from .groq import GroqProvider
from .together import TogetherProvider

__all__ = [
    "BaseProvider",
    "AdapterRegistry",
    "register_provider",
    "get_provider",
    # Provider classes
    "OpenAIProvider",
    "AnthropicProvider",
    "GeminiProvider",
    "GroqProvider",
    "TogetherProvider",
]
