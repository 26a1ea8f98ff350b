"""Config store: per-tenant loyalty configuration.

LoyaltyProgram rows are the persisted form; callers only ever see the
immutable LoyaltyConfig snapshot built from them.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import DecimalValidator
from django.db import transaction

from loyalman.conf import loyalman_settings
from loyalman.db import atomic_unit
from loyalman.exceptions import InvalidConfig
from loyalman.gates import Gates
from loyalman.models import LoyaltyProgram, LoyaltyTier

logger = logging.getLogger(__name__)


DECIMAL_FIELDS = {"earning_rate", "redemption_rate", "maximum_redemption_percentage"}
INTEGER_FIELDS = {"minimum_points_to_redeem", "points_expiry_days", "welcome_bonus_points"}
SCALAR_FIELDS = DECIMAL_FIELDS | INTEGER_FIELDS | {"is_enabled"}
UPDATABLE_FIELDS = SCALAR_FIELDS | {"tier_thresholds"}

# Keeps now + horizon inside the datetime range
MAX_EXPIRY_DAYS = 36500


@dataclass(frozen=True)
class TierRule:
    """One rung of the tier ladder."""

    tier: str
    min_spent: Decimal
    multiplier: Decimal


@dataclass(frozen=True)
class LoyaltyConfig:
    """Immutable snapshot of a program's configuration."""

    program_code: str
    is_enabled: bool
    earning_rate: Decimal
    redemption_rate: Decimal
    minimum_points_to_redeem: int
    maximum_redemption_percentage: Decimal
    points_expiry_days: int
    welcome_bonus_points: int
    tiers: tuple[TierRule, ...]  # sorted by tier rank

    @property
    def base_tier(self) -> str:
        """Lowest configured tier (assigned on enrollment)."""
        return self.tiers[0].tier

    def rule_for(self, tier: str) -> TierRule | None:
        for rule in self.tiers:
            if rule.tier == tier:
                return rule
        return None

    def multiplier_for(self, tier: str) -> Decimal:
        """Earning multiplier for tier; 1 if the program no longer configures it."""
        rule = self.rule_for(tier)
        return rule.multiplier if rule else Decimal("1")


class ConfigStore:
    """
    Read/merge access to one program's configuration.

    The program row is created on first access, seeded with
    LOYALMAN["DEFAULT_CONFIG"] over the model defaults.
    """

    def __init__(self, program_code: str):
        self.program_code = program_code
        self._program: LoyaltyProgram | None = None

    @property
    def program(self) -> LoyaltyProgram:
        """
        Program row (identity only; read settings through get()).

        Only cached when resolved outside a transaction: a row created
        inside one is lost if that transaction rolls back.
        """
        if self._program is not None:
            return self._program
        program = self._get_or_create_program()
        self._remember(program)
        return program

    def _remember(self, program: LoyaltyProgram) -> None:
        if not transaction.get_connection().in_atomic_block:
            self._program = program

    def get(self) -> LoyaltyConfig:
        """Current configuration snapshot (fresh read)."""
        program = LoyaltyProgram.objects.get(pk=self.program.pk)
        return build_config(program)

    def update(self, **changes) -> LoyaltyConfig:
        """
        Merge `changes` into the configuration.

        Scalar fields are replaced. tier_thresholds merges per tier:
        {"silver": {"min_spent": 8000, "multiplier": "1.25"}} replaces the
        silver rung, {"platinum": None} removes it.

        Returns:
            New LoyaltyConfig

        Raises:
            InvalidConfig: Unknown field, out of range value or broken
                threshold ordering. Nothing is persisted.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidConfig(
                message=f"Unknown configuration fields: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )

        program_pk = self.program.pk

        with atomic_unit("config.update", program=self.program_code):
            program = LoyaltyProgram.objects.select_for_update().get(pk=program_pk)

            values = {name: getattr(program, name) for name in SCALAR_FIELDS}
            values.update({k: v for k, v in changes.items() if k in SCALAR_FIELDS})
            thresholds = merge_thresholds(
                program.tier_thresholds, changes.get("tier_thresholds") or {}
            )

            values, tiers = normalize(values, thresholds)

            for name, value in values.items():
                setattr(program, name, value)
            program.tier_thresholds = serialize_tiers(tiers)
            program.save()
            program.refresh_from_db()

        self._remember(program)
        logger.info(
            "Loyalty config updated for %s: %s", self.program_code, ", ".join(sorted(changes))
        )
        return build_config(program)

    def _get_or_create_program(self) -> LoyaltyProgram:
        try:
            return LoyaltyProgram.objects.get(code=self.program_code)
        except LoyaltyProgram.DoesNotExist:
            pass

        seed = dict(loyalman_settings.DEFAULT_CONFIG)
        unknown = set(seed) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidConfig(
                message=f"Unknown DEFAULT_CONFIG fields: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )

        values = {
            name: LoyaltyProgram._meta.get_field(name).get_default() for name in SCALAR_FIELDS
        }
        values.update({k: v for k, v in seed.items() if k in SCALAR_FIELDS})
        thresholds = seed.get("tier_thresholds") or LoyaltyProgram._meta.get_field(
            "tier_thresholds"
        ).get_default()
        values, tiers = normalize(values, thresholds)

        with transaction.atomic():
            program, created = LoyaltyProgram.objects.get_or_create(
                code=self.program_code,
                defaults={**values, "tier_thresholds": serialize_tiers(tiers)},
            )
        if created:
            logger.info("Loyalty program created: %s", self.program_code)
        return program


# ======================================================================
# Helpers
# ======================================================================


def build_config(program: LoyaltyProgram) -> LoyaltyConfig:
    """Snapshot a program row (re-validates stored thresholds)."""
    return LoyaltyConfig(
        program_code=program.code,
        is_enabled=program.is_enabled,
        earning_rate=Decimal(program.earning_rate),
        redemption_rate=Decimal(program.redemption_rate),
        minimum_points_to_redeem=program.minimum_points_to_redeem,
        maximum_redemption_percentage=Decimal(program.maximum_redemption_percentage),
        points_expiry_days=program.points_expiry_days,
        welcome_bonus_points=program.welcome_bonus_points,
        tiers=parse_tiers(program.tier_thresholds),
    )


def merge_thresholds(current: dict, patch: dict) -> dict:
    merged = {tier: dict(rule) for tier, rule in (current or {}).items()}
    for tier, rule in patch.items():
        if rule is None:
            merged.pop(tier, None)
        else:
            merged[tier] = rule
    return merged


def parse_tiers(raw: dict) -> tuple[TierRule, ...]:
    """
    Parse and validate a tier_thresholds mapping.

    Raises:
        InvalidConfig: Unknown tier, malformed rule, negative values or
            thresholds not strictly increasing
    """
    if not isinstance(raw, dict):
        raise InvalidConfig(message="tier_thresholds must be a mapping.")

    rules = []
    for tier, rule in raw.items():
        if tier not in LoyaltyTier.values:
            raise InvalidConfig(message=f"Unknown tier: {tier}", tier=tier)
        if not isinstance(rule, dict) or not {"min_spent", "multiplier"} <= set(rule):
            raise InvalidConfig(
                message=f"Tier '{tier}' needs min_spent and multiplier.", tier=tier
            )
        min_spent = _to_decimal("min_spent", rule["min_spent"])
        multiplier = _to_decimal("multiplier", rule["multiplier"])
        if min_spent < 0 or multiplier < 0:
            raise InvalidConfig(
                message=f"Tier '{tier}' values must be non-negative.", tier=tier
            )
        rules.append(TierRule(tier, min_spent, multiplier))

    rules.sort(key=lambda r: LoyaltyTier.rank(r.tier))
    Gates.tier_threshold_ordering(rules)
    return tuple(rules)


def serialize_tiers(tiers: tuple[TierRule, ...]) -> dict:
    return {
        rule.tier: {"min_spent": str(rule.min_spent), "multiplier": str(rule.multiplier)}
        for rule in tiers
    }


def normalize(values: dict[str, Any], thresholds: dict) -> tuple[dict, tuple[TierRule, ...]]:
    """Coerce and range-check scalar fields, parse thresholds."""
    clean: dict[str, Any] = {}
    for name, value in values.items():
        if name in DECIMAL_FIELDS:
            clean[name] = _fit_field(name, _to_decimal(name, value))
        elif name in INTEGER_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfig(message=f"{name} must be an integer.", field=name)
            clean[name] = value
        else:
            clean[name] = bool(value)

        if name != "is_enabled" and clean[name] < 0:
            raise InvalidConfig(message=f"{name} must be non-negative.", field=name)

    days = clean.get("points_expiry_days")
    if days is not None and days > MAX_EXPIRY_DAYS:
        raise InvalidConfig(
            message=f"points_expiry_days must be at most {MAX_EXPIRY_DAYS}.",
            field="points_expiry_days",
        )

    pct = clean.get("maximum_redemption_percentage")
    if pct is not None and pct > 100:
        raise InvalidConfig(
            message="maximum_redemption_percentage must be between 0 and 100.",
            field="maximum_redemption_percentage",
        )

    return clean, parse_tiers(thresholds)


def _to_decimal(name: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise InvalidConfig(message=f"{name} must be a number.", field=name)
    try:
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidConfig(message=f"{name} must be a number.", field=name)
    if not result.is_finite():
        raise InvalidConfig(message=f"{name} must be a number.", field=name)
    return result


def _fit_field(name: str, value: Decimal) -> Decimal:
    """Check value against the model column and quantize it to the stored scale."""
    field = LoyaltyProgram._meta.get_field(name)
    try:
        DecimalValidator(field.max_digits, field.decimal_places)(value.normalize())
    except ValidationError:
        raise InvalidConfig(
            message=(
                f"{name} allows {field.decimal_places} decimal places "
                f"and {field.max_digits} digits."
            ),
            field=name,
        )
    return value.quantize(Decimal(1).scaleb(-field.decimal_places))
