"""aigeek - AI provider orchestration with free-tier quota accounting and fallback."""

__version__ = "0.1.0"

from aigeek.config import AIGeekConfig, load_config
from aigeek.orchestrator import Orchestrator
from aigeek.router import CallRouter, parse_json_response
from aigeek.types import CallOptions, CallResult, CallStatus, ServiceResponse
from aigeek.exceptions import (
    AIGeekError,
    AllProvidersFailedError,
    ConfigurationError,
    MalformedResponseError,
    QuotaExceededError,
    UpstreamError,
)

__all__ = [
    # Version
    "__version__",
    # Entry points
    "Orchestrator",
    "CallRouter",
    "parse_json_response",
    # Configuration
    "AIGeekConfig",
    "load_config",
    # Types
    "CallOptions",
    "CallResult",
    "CallStatus",
    "ServiceResponse",
    # Exceptions
    "AIGeekError",
    "AllProvidersFailedError",
    "ConfigurationError",
    "MalformedResponseError",
    "QuotaExceededError",
    "UpstreamError",
]
