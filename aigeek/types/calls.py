"""Request/response types for the call router."""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import ErrorDetail
from .usage import UsageSnapshot


class CallOptions(BaseModel):
    """Per-call options for ``call_ai``; unset fields fall back to provider defaults."""

    model_config = {"extra": "forbid"}

    provider: Optional[str] = None
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    caller_id: Optional[str] = None
    app_name: Optional[str] = None
    timeout: Optional[float] = None


class ProviderRequest(BaseModel):
    """Normalized single-prompt request sent to a provider adapter."""

    prompt: str
    model: str
    max_tokens: int = 1000
    temperature: float = 0.7


class ProviderResponse(BaseModel):
    """Normalized provider reply."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class CatalogEntry(BaseModel):
    """One model returned by a provider's model-listing endpoint."""

    id: str
    display_name: Optional[str] = None


class CallStatus(str, Enum):
    """Terminal states of one call."""

    SUCCEEDED = "succeeded"
    REJECTED_QUOTA = "rejected_quota"
    ALL_FAILED = "all_failed"


class AttemptOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED_CONFIGURATION = "skipped_configuration"
    SKIPPED_QUOTA = "skipped_quota"


class CallAttempt(BaseModel):
    """One provider tried while serving a call."""

    provider: str
    model: Optional[str] = None
    outcome: AttemptOutcome
    error: Optional[str] = None
    error_type: Optional[str] = None


class CallCharge(BaseModel):
    """Billing outcome of one completed call."""

    model_config = {"protected_namespaces": ()}

    provider: str
    model_id: Optional[str] = None
    app_name: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: Decimal = Decimal("0")
    is_free: bool = False


class CallResult(BaseModel):
    """Result of ``call_ai``; failures are reported here rather than raised."""

    status: CallStatus
    content: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    cost: Decimal = Decimal("0")
    is_free: bool = False
    fallback_used: bool = False
    attempts: list[CallAttempt] = Field(default_factory=list)
    usage: Optional[UsageSnapshot] = None
    error: Optional[ErrorDetail] = None

    @property
    def success(self) -> bool:
        return self.status == CallStatus.SUCCEEDED
