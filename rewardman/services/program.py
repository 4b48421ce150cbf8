"""Program service - per-merchant loyalty configuration."""

import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError, transaction

from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import LoyaltyProgram
from rewardman.services.calculator import to_decimal

logger = logging.getLogger(__name__)


# $5 spent = 2 points; 25 points = $5 discount
DEFAULT_PROGRAM_CONFIG = {
    "points_per_dollar": Decimal("0.4"),
    "minimum_purchase": Decimal("0.01"),
    "minimum_redemption": 25,
    "redemption_value": Decimal("5.00"),
    "point_expiration_days": None,
    "allow_combine_with_deals": True,
    "earn_on_discounted": False,
}

CONFIG_FIELDS = frozenset(DEFAULT_PROGRAM_CONFIG)


class ProgramService:
    """
    Service for loyalty program configuration.

    Uses @classmethod for extensibility (consistent with other services).
    Programs are created once per merchant and never deleted.
    """

    @classmethod
    def initialize(cls, merchant_id: int, /, **config) -> LoyaltyProgram:
        """
        Create the loyalty program for a merchant.

        Args:
            merchant_id: Merchant identifier
            **config: Overrides for DEFAULT_PROGRAM_CONFIG

        Returns:
            Created LoyaltyProgram (active)

        Raises:
            RewardmanError: PROGRAM_ALREADY_EXISTS or INVALID_PROGRAM_CONFIG
        """
        cls._reject_unknown(config)
        final_config = {
            **DEFAULT_PROGRAM_CONFIG,
            **rewardman_settings.DEFAULT_PROGRAM,
            **config,
        }
        cls._validate(final_config)

        if LoyaltyProgram.objects.filter(merchant_id=merchant_id).exists():
            raise RewardmanError("PROGRAM_ALREADY_EXISTS", merchant_id=merchant_id)

        try:
            with transaction.atomic():
                program = LoyaltyProgram.objects.create(
                    merchant_id=merchant_id,
                    is_active=True,
                    **final_config,
                )
        except IntegrityError:
            # Lost a race with a concurrent initialize()
            if LoyaltyProgram.objects.filter(merchant_id=merchant_id).exists():
                raise RewardmanError("PROGRAM_ALREADY_EXISTS", merchant_id=merchant_id)
            raise

        logger.info("Loyalty program created for merchant %s", merchant_id)
        return program

    @classmethod
    def get(cls, merchant_id: int) -> LoyaltyProgram | None:
        """Get program regardless of status."""
        return LoyaltyProgram.objects.filter(merchant_id=merchant_id).first()

    @classmethod
    def get_active(cls, merchant_id: int) -> LoyaltyProgram:
        """
        Get the merchant's program, which must be active.

        Raises:
            RewardmanError: PROGRAM_NOT_FOUND or PROGRAM_INACTIVE
        """
        program = cls.get(merchant_id)
        if program is None:
            raise RewardmanError("PROGRAM_NOT_FOUND", merchant_id=merchant_id)
        if not program.is_active:
            raise RewardmanError("PROGRAM_INACTIVE", merchant_id=merchant_id)
        return program

    @classmethod
    def update(cls, merchant_id: int, /, **updates) -> LoyaltyProgram:
        """
        Update program configuration fields.

        Raises:
            RewardmanError: PROGRAM_NOT_FOUND or INVALID_PROGRAM_CONFIG
        """
        cls._reject_unknown(updates)

        program = cls.get(merchant_id)
        if program is None:
            raise RewardmanError("PROGRAM_NOT_FOUND", merchant_id=merchant_id)

        cls._validate({**program.as_config(), **updates})

        for key, value in updates.items():
            setattr(program, key, value)
        program.save(update_fields=[*updates, "updated_at"])

        logger.info("Loyalty program updated for merchant %s: %s", merchant_id, sorted(updates))
        return program

    @classmethod
    def set_status(cls, merchant_id: int, is_active: bool) -> LoyaltyProgram:
        """Activate or deactivate a program."""
        program = cls.get(merchant_id)
        if program is None:
            raise RewardmanError("PROGRAM_NOT_FOUND", merchant_id=merchant_id)

        program.is_active = is_active
        program.save(update_fields=["is_active", "updated_at"])
        return program

    @classmethod
    def _reject_unknown(cls, fields) -> None:
        # merchant_id, is_active and timestamps are not configuration
        unknown = set(fields) - CONFIG_FIELDS
        if unknown:
            raise RewardmanError(
                "INVALID_PROGRAM_CONFIG",
                message=f"Unknown program fields: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )

    @classmethod
    def _validate(cls, config: dict) -> None:
        errors = []

        def number(name, convert):
            try:
                value = convert(config[name])
            except (InvalidOperation, TypeError, ValueError):
                value = None
            if value is None or (isinstance(value, Decimal) and not value.is_finite()):
                errors.append(f"{name} must be a number")
                return None
            return value

        points_per_dollar = number("points_per_dollar", to_decimal)
        if points_per_dollar is not None and points_per_dollar <= 0:
            errors.append("points_per_dollar must be greater than 0")
        minimum_purchase = number("minimum_purchase", to_decimal)
        if minimum_purchase is not None and minimum_purchase < 0:
            errors.append("minimum_purchase cannot be negative")
        minimum_redemption = number("minimum_redemption", int)
        if minimum_redemption is not None and minimum_redemption <= 0:
            errors.append("minimum_redemption must be greater than 0")
        redemption_value = number("redemption_value", to_decimal)
        if redemption_value is not None and redemption_value <= 0:
            errors.append("redemption_value must be greater than 0")
        if config.get("point_expiration_days") is not None:
            expiration = number("point_expiration_days", int)
            if expiration is not None and expiration <= 0:
                errors.append("point_expiration_days must be greater than 0")

        if errors:
            raise RewardmanError(
                "INVALID_PROGRAM_CONFIG",
                message="; ".join(errors),
                errors=errors,
            )
