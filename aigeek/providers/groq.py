"""Groq provider implementation."""

from aigeek.providers.openai import OpenAIProvider
from aigeek.providers.registry import register_provider


@register_provider("groq")
class GroqProvider(OpenAIProvider):
    """Groq provider for fast inference.

    Groq uses the OpenAI-compatible API format.
    """

    provider_name = "groq"
    default_api_base = "https://api.groq.com/openai/v1"
    static_models = [
        "llama-3.1-8b-instant",
        "llama-3.3-70b-versatile",
        "llama3-8b-8192",
        "llama3-70b-8192",
        "gemma2-9b-it",
        "meta-llama/llama-4-scout-17b-16e-instruct",
        "meta-llama/llama-4-maverick-17b-128e-instruct",
        "qwen/qwen3-32b",
        "openai/gpt-oss-20b",
        "openai/gpt-oss-120b",
        "whisper-large-v3",
    ]
