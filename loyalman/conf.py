"""
Loyalman configuration.

Usage in settings.py:
    LOYALMAN = {
        "DEFAULT_PROGRAM": "default",
        "SYSTEM_ACTOR": "system",
        "DEFAULT_CONFIG": {
            "points_expiry_days": 180,
            "welcome_bonus_points": 50,
        },
    }

Per-tenant values (rates, thresholds, expiry) live in LoyaltyProgram rows.
DEFAULT_CONFIG only seeds a program the first time it is accessed.
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


DEFAULT_TIER_THRESHOLDS = {
    "bronze": {"min_spent": "0", "multiplier": "1.0"},
    "silver": {"min_spent": "10000", "multiplier": "1.2"},
    "gold": {"min_spent": "50000", "multiplier": "1.5"},
    "platinum": {"min_spent": "100000", "multiplier": "2.0"},
}


@dataclass
class LoyalmanSettings:
    """Loyalman configuration settings."""

    # Program used when LoyaltyEngine() is built without a code
    DEFAULT_PROGRAM: str = "default"

    # Actor recorded on entries written by the engine itself
    SYSTEM_ACTOR: str = "system"

    # Window for "active customer" in program stats
    ACTIVE_CUSTOMER_DAYS: int = 30

    # Seed values for new LoyaltyProgram rows (field name -> value)
    DEFAULT_CONFIG: dict[str, Any] = field(default_factory=dict)


def get_loyalman_settings() -> LoyalmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LOYALMAN", {})
    return LoyalmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_loyalman_settings(), name)


loyalman_settings = _LazySettings()
