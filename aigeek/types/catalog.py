"""Provider and model catalog views."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel

from .capabilities import CapabilityProfile


class ProviderInfo(BaseModel):
    """Immutable view of one provider's configuration."""

    model_config = {"frozen": True}

    name: str
    display_name: Optional[str] = None
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    enabled: bool = True
    default_model: str
    max_tokens: int = 1000
    temperature: float = 0.7
    cost_per_1k_tokens: Decimal = Decimal("0")

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def is_usable(self) -> bool:
        return self.enabled and self.has_credential

    def public_dict(self) -> dict[str, Any]:
        """Dict without the credential."""
        data = self.model_dump(exclude={"api_key"})
        data["has_credential"] = self.has_credential
        return data


class ModelInfo(BaseModel):
    """View of one catalog model."""

    model_config = {"protected_namespaces": ()}

    provider: str
    model_id: str
    name: str
    is_active: bool = True
    last_checked: Optional[datetime] = None
    capabilities: Optional[CapabilityProfile] = None
