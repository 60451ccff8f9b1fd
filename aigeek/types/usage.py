"""Quota ledger types: limit sets, rolling windows and usage snapshots."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class LimitDimension(str, Enum):
    """The six tracked free-tier limit dimensions."""

    REQUESTS_PER_MINUTE = "requests_per_minute"
    REQUESTS_PER_DAY = "requests_per_day"
    TOKENS_PER_MINUTE = "tokens_per_minute"
    TOKENS_PER_DAY = "tokens_per_day"
    AUDIO_SECONDS_PER_HOUR = "audio_seconds_per_hour"
    AUDIO_SECONDS_PER_DAY = "audio_seconds_per_day"

    @classmethod
    def values(cls) -> list[str]:
        """Return all dimension names."""
        return [d.value for d in cls]


class LimitSet(BaseModel):
    """Free-tier limits; 0 means the dimension is not tracked."""

    requests_per_minute: int = 0
    requests_per_day: int = 0
    tokens_per_minute: int = 0
    tokens_per_day: int = 0
    audio_seconds_per_hour: float = 0
    audio_seconds_per_day: float = 0

    def get(self, dimension: LimitDimension) -> float:
        return getattr(self, dimension.value)

    @property
    def is_empty(self) -> bool:
        return all(self.get(d) == 0 for d in LimitDimension)


class UsagePercentages(BaseModel):
    """Usage per dimension as a percentage of its limit, clamped to [0, 100]."""

    requests_per_minute: float = 0.0
    requests_per_day: float = 0.0
    tokens_per_minute: float = 0.0
    tokens_per_day: float = 0.0
    audio_seconds_per_hour: float = 0.0
    audio_seconds_per_day: float = 0.0

    def get(self, dimension: LimitDimension) -> float:
        return getattr(self, dimension.value)


class LimitFlags(BaseModel):
    """Boolean flag per dimension (near-limit or at-limit)."""

    requests_per_minute: bool = False
    requests_per_day: bool = False
    tokens_per_minute: bool = False
    tokens_per_day: bool = False
    audio_seconds_per_hour: bool = False
    audio_seconds_per_day: bool = False

    def get(self, dimension: LimitDimension) -> bool:
        return getattr(self, dimension.value)

    def any(self, dimensions: Optional[list[LimitDimension]] = None) -> bool:
        """Whether any of ``dimensions`` (default: all) is flagged."""
        return any(self.get(d) for d in (dimensions or list(LimitDimension)))

    def flagged(self) -> list[LimitDimension]:
        return [d for d in LimitDimension if self.get(d)]


class MinuteWindow(BaseModel):
    requests: int = 0
    tokens: int = 0
    audio_seconds: float = 0
    window_start: Optional[datetime] = None


class HourWindow(BaseModel):
    audio_seconds: float = 0
    window_start: Optional[datetime] = None


class DayWindow(BaseModel):
    requests: int = 0
    tokens: int = 0
    audio_seconds: float = 0
    window_date: Optional[date] = None


class UsageDelta(BaseModel):
    """Usage to add to the ledger for one call."""

    requests: int = 1
    input_tokens: int = 0
    output_tokens: int = 0
    audio_seconds: float = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class UsageSnapshot(BaseModel):
    """State of one (provider, model, caller, day) usage record."""

    model_config = {"protected_namespaces": ()}

    provider: str
    model_id: str
    caller_id: str
    day: date
    minute: MinuteWindow = Field(default_factory=MinuteWindow)
    hour: HourWindow = Field(default_factory=HourWindow)
    current_day: DayWindow = Field(default_factory=DayWindow)
    limits: LimitSet = Field(default_factory=LimitSet)
    percentages: UsagePercentages = Field(default_factory=UsagePercentages)
    is_near_limit: LimitFlags = Field(default_factory=LimitFlags)
    is_at_limit: LimitFlags = Field(default_factory=LimitFlags)


class AdmissionDecision(BaseModel):
    """Outcome of an admission check (and, for reservations, the reservation)."""

    admissible: bool
    reason: Optional[str] = None
    critical_dimensions: list[LimitDimension] = Field(default_factory=list)
    usage: Optional[UsageSnapshot] = None
    reserved: bool = False


class MeterResult(BaseModel):
    """Snapshot after metering plus whether the call fit inside the free limits."""

    snapshot: UsageSnapshot
    within_limits: bool


class ModelUsage(BaseModel):
    model_config = {"protected_namespaces": ()}

    model_id: str
    requests: int = 0
    tokens: int = 0
    audio_seconds: float = 0
    percentages: UsagePercentages = Field(default_factory=UsagePercentages)
    is_near_limit: LimitFlags = Field(default_factory=LimitFlags)
    is_at_limit: LimitFlags = Field(default_factory=LimitFlags)


class UsageSummary(BaseModel):
    """Today's usage for one caller across all models of one provider."""

    provider: str
    caller_id: str
    total_requests: int = 0
    total_tokens: int = 0
    total_audio_seconds: float = 0
    models: list[ModelUsage] = Field(default_factory=list)
    is_near_any_limit: bool = False
    is_at_any_limit: bool = False
