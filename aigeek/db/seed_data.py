"""Seed data for model pricing and free-tier allowances.

All prices are USD per 1000 tokens. Anthropic publishes per-million
prices; those are divided by 1000 here.
"""

from typing import Any

# provider -> model id -> (input price, output price) per 1k tokens
MODEL_PRICING: dict[str, dict[str, tuple[str, str]]] = {
    "anthropic": {
        "claude-opus-4-1-20250805": ("0.015", "0.075"),
        "claude-opus-4-20250514": ("0.015", "0.075"),
        "claude-sonnet-4-20250514": ("0.003", "0.015"),
        "claude-3-7-sonnet-20250219": ("0.003", "0.015"),
        "claude-3-5-sonnet-20241022": ("0.003", "0.015"),
        "claude-3-5-haiku-20241022": ("0.0008", "0.004"),
        "claude-3-haiku-20240307": ("0.00025", "0.00125"),
    },
    "groq": {
        "llama-3.1-8b-instant": ("0.00027", "0.00027"),
        "llama-3.1-70b-versatile": ("0.0007", "0.0007"),
        "llama-3.1-405b-reasoning": ("0.002", "0.002"),
        "mixtral-8x7b-instant": ("0.00027", "0.00027"),
        "gemma-2-9b-it": ("0.00027", "0.00027"),
        "llama-3.3-70b-versatile": ("0.0007", "0.0007"),
        "llama3-8b-8192": ("0.00027", "0.00027"),
        "llama3-70b-8192": ("0.0007", "0.0007"),
        "gemma2-9b-it": ("0.00027", "0.00027"),
        "compound-beta": ("0.00027", "0.00027"),
        "compound-beta-mini": ("0.00027", "0.00027"),
        "meta-llama/llama-4-scout-17b-16e-instruct": ("0.0007", "0.0007"),
        "meta-llama/llama-4-maverick-17b-128e-instruct": ("0.0007", "0.0007"),
        "meta-llama/llama-guard-4-12b": ("0.0007", "0.0007"),
        "meta-llama/llama-prompt-guard-2-22m": ("0.00027", "0.00027"),
        "meta-llama/llama-prompt-guard-2-86m": ("0.00027", "0.00027"),
        "qwen/qwen3-32b": ("0.0007", "0.0007"),
        "moonshotai/kimi-k2-instruct": ("0.0007", "0.0007"),
        "openai/gpt-oss-20b": ("0.0007", "0.0007"),
        "openai/gpt-oss-120b": ("0.002", "0.002"),
        "allam-2-7b": ("0.00027", "0.00027"),
        "deepseek-r1-distill-llama-70b": ("0.0007", "0.0007"),
        "whisper-large-v3": ("0.00027", "0.00027"),
        "whisper-large-v3-turbo": ("0.00027", "0.00027"),
        "distil-whisper-large-v3-en": ("0.00027", "0.00027"),
        "playai-tts": ("0.00027", "0.00027"),
        "playai-tts-arabic": ("0.00027", "0.00027"),
    },
    "gemini": {
        "gemini-1.5-flash": ("0.000075", "0.0003"),
        "gemini-1.5-pro": ("0.0035", "0.0105"),
        "gemini-pro": ("0.0005", "0.0015"),
    },
    "together": {
        "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free": ("0.0002", "0.0002"),
        "meta-llama/Llama-3.1-8B-Instruct": ("0.0002", "0.0002"),
        "togethercomputer/llama-3.1-8b-instruct": ("0.0002", "0.0002"),
    },
}

_GROQ_LIMITS: dict[str, Any] = {
    "requests_per_minute": 50,
    "requests_per_day": 14400,
    "tokens_per_minute": 18000,
    "tokens_per_day": 5184000,
}

_GROQ_AUDIO_LIMITS: dict[str, Any] = {
    **_GROQ_LIMITS,
    "audio_seconds_per_hour": 7200,
    "audio_seconds_per_day": 28800,
}

# 60 RPM around the clock, assuming ~1k tokens per request
_TOGETHER_LIMITS: dict[str, Any] = {
    "requests_per_minute": 60,
    "requests_per_day": 86400,
    "tokens_per_minute": 60000,
    "tokens_per_day": 86400000,
}

_GROQ_FREE_MODELS = [
    "allam-2-7b",
    "compound-beta",
    "compound-beta-mini",
    "deepseek-r1-distill-llama-70b",
    "gemma2-9b-it",
    "llama-3.1-8b-instant",
    "llama-3.3-70b-versatile",
    "llama3-70b-8192",
    "llama3-8b-8192",
    "meta-llama/llama-4-maverick-17b-128e-instruct",
    "meta-llama/llama-4-scout-17b-16e-instruct",
    "meta-llama/llama-guard-4-12b",
    "meta-llama/llama-prompt-guard-2-22m",
    "meta-llama/llama-prompt-guard-2-86m",
    "moonshotai/kimi-k2-instruct",
    "openai/gpt-oss-120b",
    "openai/gpt-oss-20b",
    "qwen/qwen3-32b",
]

_GROQ_FREE_AUDIO_MODELS = [
    "distil-whisper-large-v3-en",
    "playai-tts",
    "playai-tts-arabic",
    "whisper-large-v3",
    "whisper-large-v3-turbo",
]

_TOGETHER_FREE_MODELS = [
    "meta-llama/Llama-Vision-Free",
    "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free",
    "lgai/exaone-deep-32b",
    "lgai/exaone-3-5-32b-instruct",
    "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free",
]

# Anthropic has no free tier and is always metered.
FREE_TIERS: list[dict[str, Any]] = (
    [
        {
            "provider": "groq",
            "model_id": model_id,
            "is_free": True,
            "limits": dict(_GROQ_LIMITS),
            "notes": "Free tier - all Groq models available",
        }
        for model_id in _GROQ_FREE_MODELS
    ]
    + [
        {
            "provider": "groq",
            "model_id": model_id,
            "is_free": True,
            "limits": dict(_GROQ_AUDIO_LIMITS),
            "notes": "Free tier - all Groq models available",
        }
        for model_id in _GROQ_FREE_AUDIO_MODELS
    ]
    + [
        {
            "provider": "gemini",
            "model_id": "gemini-1.5-flash",
            "is_free": True,
            "limits": {
                "requests_per_minute": 60,
                "requests_per_day": 1500,
                "tokens_per_minute": 60000,
                "tokens_per_day": 1500000,
            },
            "notes": "Free tier with good limits",
        }
    ]
    + [
        {
            "provider": "together",
            "model_id": model_id,
            "is_free": True,
            "limits": dict(_TOGETHER_LIMITS),
            "notes": "Free tier - 60 RPM",
        }
        for model_id in _TOGETHER_FREE_MODELS
    ]
)
