"""Type definitions for aigeek."""

from .catalog import ModelInfo, ProviderInfo
from .capabilities import (
    CapabilityProfile,
    PerformanceProfile,
    QualityClass,
    SpeedClass,
    TaskSupport,
)
from .calls import (
    AttemptOutcome,
    CallAttempt,
    CallCharge,
    CallOptions,
    CallResult,
    CallStatus,
    CatalogEntry,
    ProviderRequest,
    ProviderResponse,
)
from .common import ErrorDetail, ServiceResponse
from .usage import (
    AdmissionDecision,
    DayWindow,
    HourWindow,
    LimitDimension,
    LimitFlags,
    LimitSet,
    MeterResult,
    MinuteWindow,
    ModelUsage,
    UsageDelta,
    UsagePercentages,
    UsageSnapshot,
    UsageSummary,
)

__all__ = [
    # Capabilities
    "CapabilityProfile",
    "PerformanceProfile",
    "QualityClass",
    "SpeedClass",
    "TaskSupport",
    # Catalog
    "ModelInfo",
    "ProviderInfo",
    # Calls
    "AttemptOutcome",
    "CallAttempt",
    "CallCharge",
    "CallOptions",
    "CallResult",
    "CallStatus",
    "CatalogEntry",
    "ProviderRequest",
    "ProviderResponse",
    # Common
    "ErrorDetail",
    "ServiceResponse",
    # Usage
    "AdmissionDecision",
    "DayWindow",
    "HourWindow",
    "LimitDimension",
    "LimitFlags",
    "LimitSet",
    "MeterResult",
    "MinuteWindow",
    "ModelUsage",
    "UsageDelta",
    "UsagePercentages",
    "UsageSnapshot",
    "UsageSummary",
]
