"""Point calculator: earn and redemption arithmetic.

Pure functions, no I/O. Money and rates are Decimal; points are int and
always rounded down (fractional points are never awarded).

    $5.00 at 0.4 points/dollar      -> 2 points
    60 points against 25 pts = $5   -> 50 points used, $10 discount, 10 left
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal


@dataclass(frozen=True)
class PointCalculation:
    """Points earned for a purchase amount."""

    order_amount: Decimal
    points_earned: int
    points_per_dollar: Decimal
    calculation: str


@dataclass(frozen=True)
class RedemptionCalculation:
    """Discount obtained for a number of points."""

    points_requested: int
    points_consumed: int
    discount_value: Decimal
    remainder: int
    calculation: str


def to_decimal(value) -> Decimal:
    """Coerce int/str/float/Decimal to Decimal (floats via str, so 0.4 stays 0.4)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_earned_points(amount, points_per_dollar) -> PointCalculation:
    """
    Points earned for a purchase: floor(amount * points_per_dollar).

    A non-positive amount is not an error: it earns zero points and the
    calculation string says why.
    """
    amount = to_decimal(amount)
    rate = to_decimal(points_per_dollar)

    if amount <= 0:
        return PointCalculation(
            order_amount=amount,
            points_earned=0,
            points_per_dollar=rate,
            calculation="Amount must be greater than 0",
        )

    points = int((amount * rate).to_integral_value(rounding=ROUND_FLOOR))
    return PointCalculation(
        order_amount=amount,
        points_earned=points,
        points_per_dollar=rate,
        calculation=f"floor({amount} × {rate}) = {points} points",
    )


def calculate_redemption_value(
    points_requested: int,
    minimum_redemption: int,
    redemption_value,
) -> RedemptionCalculation:
    """
    Discount for redeeming points, in whole redemption units only.

    Below minimum_redemption nothing is consumed and every requested point
    comes back as remainder.
    """
    value = to_decimal(redemption_value)

    if points_requested < minimum_redemption:
        return RedemptionCalculation(
            points_requested=points_requested,
            points_consumed=0,
            discount_value=Decimal("0"),
            remainder=points_requested,
            calculation=f"Minimum {minimum_redemption} points required",
        )

    units = points_requested // minimum_redemption
    consumed = units * minimum_redemption
    discount = units * value
    remainder = points_requested - consumed

    return RedemptionCalculation(
        points_requested=points_requested,
        points_consumed=consumed,
        discount_value=discount,
        remainder=remainder,
        calculation=(
            f"{units} × ${value} = ${discount} "
            f"({consumed} points used, {remainder} remaining)"
        ),
    )
