"""Provider registry and model capability catalog."""

from aigeek.catalog.capabilities import (
    default_capabilities,
    infer_capabilities,
    known_capabilities,
    resolve_capabilities,
)
from aigeek.catalog.registry import ProviderRegistry

__all__ = [
    "ProviderRegistry",
    "default_capabilities",
    "infer_capabilities",
    "known_capabilities",
    "resolve_capabilities",
]
