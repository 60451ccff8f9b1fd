"""Adapter registry mapping provider names to adapter classes."""

from typing import Callable, Optional, Type

from .base import BaseProvider


class AdapterRegistry:
    """Registry for provider adapters."""

    _providers: dict[str, Type[BaseProvider]] = {}

    @classmethod
    def register(cls, provider_name: str, provider_class: Type[BaseProvider]) -> None:
        """Register a provider.

        Args:
            provider_name: The provider identifier
            provider_class: The provider class
        """
        cls._providers[provider_name] = provider_class

    @classmethod
    def get(cls, provider_name: str) -> Type[BaseProvider]:
        """Get a provider by name.

        Args:
            provider_name: The provider identifier

        Returns:
            The provider class

        Raises:
            KeyError: If provider is not registered
        """
        if provider_name not in cls._providers:
            raise KeyError(f"Provider '{provider_name}' is not registered")
        return cls._providers[provider_name]

    @classmethod
    def get_by_type(cls, provider_type: str) -> Optional[Type[BaseProvider]]:
        """Get a provider class or None if not found."""
        return cls._providers.get(provider_type)

    @classmethod
    def list_providers(cls) -> list[str]:
        """List all registered provider names.

        Returns:
            List of provider names
        """
        return list(cls._providers.keys())


def register_provider(provider_name: str) -> Callable[[Type[BaseProvider]], Type[BaseProvider]]:
    """Decorator to register a provider class.

    Args:
        provider_name: The provider identifier

    Returns:
        Decorator function
    """
    def decorator(cls: Type[BaseProvider]) -> Type[BaseProvider]:
        AdapterRegistry.register(provider_name, cls)
        cls.provider_name = provider_name
        return cls
    return decorator


def get_provider(provider_name: str) -> Type[BaseProvider]:
    """Get a provider by name.

    Args:
        provider_name: The provider identifier

    Returns:
        The provider class
    """
    return AdapterRegistry.get(provider_name)
