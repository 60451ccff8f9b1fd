"""Model capability profiles: curated for well-known models, inferred otherwise."""

import re
from typing import Optional

from aigeek.types import (
    CapabilityProfile,
    PerformanceProfile,
    QualityClass,
    SpeedClass,
    TaskSupport,
)

_SLOW = SpeedClass.SLOW
_MEDIUM = SpeedClass.MEDIUM
_FAST = SpeedClass.FAST
_ULTRA = SpeedClass.ULTRA_FAST

_BASIC = QualityClass.BASIC
_GOOD = QualityClass.GOOD
_EXCELLENT = QualityClass.EXCELLENT
_SOTA = QualityClass.STATE_OF_THE_ART

_MINI_RE = re.compile(r"(^|[-_./:])(mini|small)($|[-_./:])")
_ONE_MILLION_RE = re.compile(r"(^|[-_./:])1m($|[-_./:])")


def default_capabilities() -> CapabilityProfile:
    """Conservative profile used for unknown models."""
    return CapabilityProfile()


def _restricted_tasks(tasks: TaskSupport) -> None:
    tasks.code_generation = False
    tasks.creative_writing = False
    tasks.structured_output = False


def infer_capabilities(model_id: Optional[str]) -> CapabilityProfile:
    """Infer a capability profile from substrings of a model id.

    Starts from the conservative default and applies overrides in order,
    so later rules win. Never raises.

    Args:
        model_id: Provider model identifier (may be None or empty)

    Returns:
        Capability profile
    """
    profile = default_capabilities()
    if not model_id:
        return profile

    model = model_id.lower()
    tasks = profile.tasks
    performance = profile.performance

    if "vision" in model or "multimodal" in model:
        profile.supports_vision = True

    if "whisper" in model or "tts" in model or "audio" in model:
        profile.supports_audio = True
        _restricted_tasks(tasks)

    if "70b" in model or "405b" in model:
        profile.max_tokens = 8192
        profile.context_window = 8192
        tasks.reasoning = True
        performance.reasoning = _EXCELLENT
        performance.quality = _EXCELLENT

    if "405b" in model:
        performance.reasoning = _SOTA
        performance.quality = _SOTA

    if "8b" in model or "9b" in model:
        profile.max_tokens = 8192
        profile.context_window = 8192
        performance.speed = _ULTRA

    if "instant" in model or "turbo" in model or _MINI_RE.search(model):
        performance.speed = _ULTRA

    if "claude" in model or "gemini" in model:
        profile.supports_function_calling = True

    if "guard" in model:
        _restricted_tasks(tasks)
        tasks.translation = False

    if "200k" in model:
        profile.max_tokens = 200000
        profile.context_window = 200000

    if "1048576" in model or _ONE_MILLION_RE.search(model):
        profile.max_tokens = 1048576
        profile.context_window = 1048576

    return profile


def _profile(
    context: int,
    speed: SpeedClass,
    quality: QualityClass,
    reasoning: Optional[QualityClass] = None,
    *,
    vision: bool = False,
    audio: bool = False,
    functions: bool = False,
    restricted: bool = False,
) -> CapabilityProfile:
    reasoning = reasoning or quality
    tasks = TaskSupport(reasoning=reasoning != _BASIC)
    if restricted:
        _restricted_tasks(tasks)
        tasks.translation = False
    return CapabilityProfile(
        max_tokens=context,
        context_window=context,
        supports_vision=vision,
        supports_audio=audio,
        supports_function_calling=functions,
        tasks=tasks,
        performance=PerformanceProfile(speed=speed, quality=quality, reasoning=reasoning),
    )


def _claude(speed: SpeedClass, quality: QualityClass, vision: bool = False) -> CapabilityProfile:
    return _profile(200000, speed, quality, vision=vision, functions=True)


def _small(context: int = 8192, speed: SpeedClass = _ULTRA, quality: QualityClass = _GOOD) -> CapabilityProfile:
    return _profile(context, speed, quality, _BASIC)


def _large(speed: SpeedClass = _FAST, quality: QualityClass = _EXCELLENT, reasoning: Optional[QualityClass] = None) -> CapabilityProfile:
    return _profile(8192, speed, quality, reasoning)


def _audio(speed: SpeedClass, quality: QualityClass) -> CapabilityProfile:
    return _profile(8192, speed, quality, _BASIC, audio=True, restricted=True)


def _guard(speed: SpeedClass, quality: QualityClass) -> CapabilityProfile:
    return _profile(8192, speed, quality, _BASIC, restricted=True)


# Built lazily so every lookup returns a fresh, mutable copy
_KNOWN_CAPABILITIES = {
    "anthropic": {
        "claude-3-5-sonnet-20241022": lambda: _claude(_FAST, _EXCELLENT),
        "claude-3-5-haiku-20241022": lambda: _claude(_ULTRA, _GOOD),
        "claude-opus-4-1-20250805": lambda: _claude(_SLOW, _SOTA, vision=True),
        "claude-opus-4-20250514": lambda: _claude(_SLOW, _SOTA, vision=True),
        "claude-sonnet-4-20250514": lambda: _claude(_MEDIUM, _EXCELLENT),
        "claude-3-7-sonnet-20250219": lambda: _claude(_MEDIUM, _EXCELLENT),
        "claude-3-haiku-20240307": lambda: _claude(_ULTRA, _GOOD),
    },
    "groq": {
        "llama-3.1-8b-instant": _small,
        "llama-3.1-70b-versatile": _large,
        "llama-3.1-405b-reasoning": lambda: _large(_MEDIUM, _EXCELLENT, _SOTA),
        "mixtral-8x7b-instant": _small,
        "gemma-2-9b-it": _small,
        "llama-3.3-70b-versatile": _large,
        "llama3-8b-8192": _small,
        "llama3-70b-8192": _large,
        "gemma2-9b-it": _small,
        "compound-beta": _small,
        "compound-beta-mini": _small,
        "meta-llama/llama-4-scout-17b-16e-instruct": _large,
        "meta-llama/llama-4-maverick-17b-128e-instruct": _large,
        "meta-llama/llama-guard-4-12b": lambda: _guard(_FAST, _GOOD),
        "meta-llama/llama-prompt-guard-2-22m": lambda: _guard(_ULTRA, _BASIC),
        "meta-llama/llama-prompt-guard-2-86m": lambda: _guard(_ULTRA, _BASIC),
        "qwen/qwen3-32b": _large,
        "moonshotai/kimi-k2-instruct": _large,
        "openai/gpt-oss-20b": _large,
        "openai/gpt-oss-120b": lambda: _large(_MEDIUM, _SOTA),
        "allam-2-7b": _small,
        "deepseek-r1-distill-llama-70b": _large,
        "whisper-large-v3": lambda: _audio(_FAST, _EXCELLENT),
        "whisper-large-v3-turbo": lambda: _audio(_ULTRA, _EXCELLENT),
        "distil-whisper-large-v3-en": lambda: _audio(_ULTRA, _GOOD),
        "playai-tts": lambda: _audio(_FAST, _GOOD),
        "playai-tts-arabic": lambda: _audio(_FAST, _GOOD),
    },
    "gemini": {
        "gemini-1.5-flash": lambda: _profile(1048576, _FAST, _EXCELLENT, vision=True, functions=True),
        "gemini-1.5-pro": lambda: _profile(1048576, _MEDIUM, _SOTA, vision=True, functions=True),
        "gemini-pro": lambda: _profile(1048576, _MEDIUM, _EXCELLENT, functions=True),
    },
    "together": {
        "meta-llama/Llama-Vision-Free": lambda: _profile(4096, _FAST, _GOOD, _BASIC, vision=True),
        "deepseek-ai/DeepSeek-R1-Distill-Llama-70B-free": _large,
        "lgai/exaone-deep-32b": lambda: _small(4096, _FAST),
        "lgai/exaone-3-5-32b-instruct": lambda: _small(4096, _FAST),
        "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free": _large,
    },
}


def known_capabilities(provider: str, model_id: str) -> Optional[CapabilityProfile]:
    """Curated profile for a well-known model, or None."""
    factory = _KNOWN_CAPABILITIES.get(provider, {}).get(model_id)
    return factory() if factory else None


def resolve_capabilities(provider: str, model_id: str) -> CapabilityProfile:
    """Known profile when curated, inferred otherwise."""
    return known_capabilities(provider, model_id) or infer_capabilities(model_id)
