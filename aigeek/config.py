"""Configuration management for the orchestration engine."""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

import yaml

from aigeek.types import LimitDimension

# Provider name -> (display name, base URL, default model, cost per 1k tokens, env var)
_DEFAULT_PROVIDERS: dict[str, tuple[str, str, str, str, str]] = {
    "anthropic": (
        "Claude 3.5 Sonnet",
        "https://api.anthropic.com/v1",
        "claude-3-5-sonnet-20241022",
        "0.003",
        "ANTHROPIC_API_KEY",
    ),
    "groq": (
        "Groq Llama 3.1",
        "https://api.groq.com/openai/v1",
        "llama-3.1-8b-instant",
        "0.00027",
        "GROQ_API_KEY",
    ),
    "gemini": (
        "Gemini 1.5 Flash",
        "https://generativelanguage.googleapis.com/v1beta",
        "gemini-1.5-flash",
        "0.00035",
        "GEMINI_API_KEY",
    ),
    "together": (
        "Together Llama 3.3",
        "https://api.together.xyz/v1",
        "meta-llama/Llama-3.3-70B-Instruct-Turbo-Free",
        "0.0002",
        "TOGETHER_API_KEY",
    ),
}

# Providers bottlenecked by minute windows are checked on minute dimensions,
# providers bottlenecked by daily caps on day dimensions.
DEFAULT_CRITICAL_DIMENSIONS: dict[str, list[str]] = {
    "groq": [
        LimitDimension.REQUESTS_PER_MINUTE.value,
        LimitDimension.TOKENS_PER_MINUTE.value,
    ],
    "together": [
        LimitDimension.REQUESTS_PER_MINUTE.value,
        LimitDimension.TOKENS_PER_MINUTE.value,
    ],
    "gemini": [
        LimitDimension.REQUESTS_PER_DAY.value,
        LimitDimension.TOKENS_PER_DAY.value,
    ],
}


@dataclass
class ProviderSettings:
    """Static settings for one upstream provider."""
    provider: str
    display_name: str = ""
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    enabled: bool = True
    default_model: str = ""
    max_tokens: int = 1000
    temperature: float = 0.7
    cost_per_1k_tokens: str = "0"


@dataclass
class RouterConfig:
    """Call router configuration."""
    default_provider: str = "anthropic"
    fallback_order: list[str] = field(
        default_factory=lambda: ["anthropic", "groq", "gemini", "together"]
    )
    timeout: float = 30.0
    fallback_on_quota: bool = False


@dataclass
class QuotaConfig:
    """Quota ledger configuration."""
    near_limit_threshold: float = 80.0
    at_limit_threshold: float = 95.0
    session_caller_id: str = "session"
    critical_dimensions: dict[str, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CRITICAL_DIMENSIONS.items()}
    )

    def critical_for(self, provider: str) -> list[LimitDimension]:
        """Dimensions whose at-limit flag blocks admission for ``provider``."""
        names = self.critical_dimensions.get(provider)
        if not names:
            return list(LimitDimension)
        return [LimitDimension(name) for name in names]


@dataclass
class CatalogConfig:
    """Provider registry / recommendation configuration."""
    refresh_interval_hours: float = 24.0
    stale_model_hours: float = 24.0
    missing_capability_policy: str = "permissive"  # permissive, strict
    seed_on_initialize: bool = True


@dataclass
class GeneralConfig:
    """General configuration."""
    database_url: Optional[str] = None
    log_level: str = "INFO"
    sql_echo: bool = False


@dataclass
class AIGeekConfig:
    """Full engine configuration."""
    providers: dict[str, ProviderSettings] = field(default_factory=dict)
    router: RouterConfig = field(default_factory=RouterConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    general: GeneralConfig = field(default_factory=GeneralConfig)


def _resolve_env_vars(value: Any) -> Any:
    """Resolve environment variables in configuration values.

    Supports format: os.environ/VAR_NAME or ${VAR_NAME}

    Args:
        value: Configuration value

    Returns:
        Resolved value
    """
    if isinstance(value, str):
        if value.startswith("os.environ/"):
            env_var = value[11:]
            return os.environ.get(env_var)
        elif value.startswith("${") and value.endswith("}"):
            env_var = value[2:-1]
            return os.environ.get(env_var)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def default_provider_settings() -> dict[str, ProviderSettings]:
    """Built-in provider settings with credentials read from the environment."""
    providers = {}
    for name, (display, base, model, cost, env_var) in _DEFAULT_PROVIDERS.items():
        providers[name] = ProviderSettings(
            provider=name,
            display_name=display,
            api_key=os.environ.get(env_var),
            api_base=base,
            default_model=model,
            cost_per_1k_tokens=cost,
        )
    return providers


def _parse_provider(name: str, data: dict[str, Any], base: Optional[ProviderSettings]) -> ProviderSettings:
    base = base or ProviderSettings(provider=name)
    data = _resolve_env_vars(data)
    return ProviderSettings(
        provider=name,
        display_name=data.get("display_name", base.display_name),
        api_key=data.get("api_key", base.api_key),
        api_base=data.get("api_base", base.api_base),
        enabled=data.get("enabled", base.enabled),
        default_model=data.get("default_model", base.default_model),
        max_tokens=data.get("max_tokens", base.max_tokens),
        temperature=data.get("temperature", base.temperature),
        cost_per_1k_tokens=str(data.get("cost_per_1k_tokens", base.cost_per_1k_tokens)),
    )


def load_config(config_path: Optional[str] = None) -> AIGeekConfig:
    """Load configuration from file.

    Args:
        config_path: Path to configuration file. If None, uses default locations.

    Returns:
        Engine configuration
    """
    if config_path is None:
        search_paths = [
            "aigeek.yaml",
            "config/aigeek.yaml",
            "/etc/aigeek/config.yaml",
        ]
        for path in search_paths:
            if os.path.exists(path):
                config_path = path
                break

    config = AIGeekConfig(providers=default_provider_settings())
    config.general.database_url = os.environ.get("DATABASE_URL")

    if config_path and os.path.exists(config_path):
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)

        if data:
            for name, provider_data in (data.get("providers") or {}).items():
                config.providers[name] = _parse_provider(
                    name, provider_data or {}, config.providers.get(name)
                )

            if "router_settings" in data:
                router_data = data["router_settings"]
                config.router = RouterConfig(
                    default_provider=router_data.get("default_provider", "anthropic"),
                    fallback_order=router_data.get(
                        "fallback_order", ["anthropic", "groq", "gemini", "together"]
                    ),
                    timeout=router_data.get("timeout", 30.0),
                    fallback_on_quota=router_data.get("fallback_on_quota", False),
                )

            if "quota_settings" in data:
                quota_data = data["quota_settings"]
                config.quota = QuotaConfig(
                    near_limit_threshold=quota_data.get("near_limit_threshold", 80.0),
                    at_limit_threshold=quota_data.get("at_limit_threshold", 95.0),
                    session_caller_id=quota_data.get("session_caller_id", "session"),
                    critical_dimensions=quota_data.get(
                        "critical_dimensions",
                        {k: list(v) for k, v in DEFAULT_CRITICAL_DIMENSIONS.items()},
                    ),
                )

            if "catalog_settings" in data:
                catalog_data = data["catalog_settings"]
                config.catalog = CatalogConfig(
                    refresh_interval_hours=catalog_data.get("refresh_interval_hours", 24.0),
                    stale_model_hours=catalog_data.get("stale_model_hours", 24.0),
                    missing_capability_policy=catalog_data.get("missing_capability_policy", "permissive"),
                    seed_on_initialize=catalog_data.get("seed_on_initialize", True),
                )

            if "general_settings" in data:
                general = data["general_settings"]
                config.general = GeneralConfig(
                    database_url=_resolve_env_vars(general.get("database_url")) or config.general.database_url,
                    log_level=general.get("log_level", "INFO"),
                    sql_echo=general.get("sql_echo", False),
                )

    return config


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for processes embedding the engine."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def mask_secret(secret: Optional[str]) -> str:
    """Mask a credential for log output."""
    if not secret:
        return "Not configured"
    if len(secret) <= 20:
        return f"{secret[:4]}..."
    return f"{secret[:12]}...{secret[-8:]}"
