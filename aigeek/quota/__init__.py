"""Free-tier quota accounting."""

from aigeek.quota.ledger import QuotaLedger
from aigeek.quota.limits import (
    AT_LIMIT_THRESHOLD,
    NEAR_LIMIT_THRESHOLD,
    evaluate_limits,
    percentage,
    roll_windows,
)

__all__ = [
    "QuotaLedger",
    "AT_LIMIT_THRESHOLD",
    "NEAR_LIMIT_THRESHOLD",
    "evaluate_limits",
    "percentage",
    "roll_windows",
]
