"""
Payment amount rules.

Pure functions over an order's totals; they decide how much a payment of a
given type may be for. All amounts are paise.
"""
from kitchen_oms.core.constants import PaymentType, SystemConstants
from kitchen_oms.core.exceptions import InvalidAmountError, PreconditionError, ValidationError
from kitchen_oms.core.money import ceil_to_unit, percentage_of
from kitchen_oms.dto.payments import AdvanceQuote

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


def advance_bounds(total: int, remaining: int) -> tuple[int, int]:
    """
    Inclusive (minimum, maximum) for an advance.

    The maximum stays one paisa short of the balance so an advance never
    settles the order; that is what `remaining` is for.
    """
    minimum = 1
    if configs.MIN_ADVANCE_PERCENTAGE > 0:
        minimum = max(1, percentage_of(total, configs.MIN_ADVANCE_PERCENTAGE))
    return minimum, remaining - 1


def validate_advance(amount: int, total: int, remaining: int) -> int:
    minimum, maximum = advance_bounds(total, remaining)
    if amount < minimum or amount > maximum:
        raise InvalidAmountError(amount, minimum, maximum)
    return amount


def quote_amount(payment_type: str, total: int, received: int, remaining: int, amount: int | None = None) -> int:
    """
    Amount to charge for a payment of `payment_type`.

    Raises:
        PreconditionError: the payment type is not available for the order right now
        InvalidAmountError: an advance outside its bounds
    """
    if payment_type == PaymentType.FULL:
        if received > 0:
            raise PreconditionError("Full payment is only available before any payment is received; pay the remaining amount instead")
        if total <= 0:
            raise PreconditionError("Nothing to pay for this order")
        return total

    if payment_type == PaymentType.REMAINING:
        if remaining <= 0:
            raise PreconditionError("Order is already fully paid")
        return remaining

    if payment_type == PaymentType.ADVANCE:
        if amount is None:
            raise ValidationError("amount is required for advance payments")
        return validate_advance(amount, total, remaining)

    raise ValidationError(f"Unknown payment type: {payment_type}")


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return min(max(value, minimum), maximum)


def advance_quote(total: int, received: int, remaining: int) -> AdvanceQuote:
    """Bounds, a default of half the balance, and quick picks rounded up to whole rupees"""
    minimum, maximum = advance_bounds(total, remaining)
    if maximum >= minimum:
        default = _clamp(ceil_to_unit(-(-remaining // 2)), minimum, maximum)
        quick_picks = {
            pct: _clamp(ceil_to_unit(percentage_of(remaining, pct)), minimum, maximum)
            for pct in SystemConstants.ADVANCE_QUICK_PICKS
        }
    else:
        default = 0
        quick_picks = {}
    return AdvanceQuote(
        remaining_amount=remaining,
        minimum=minimum,
        maximum=max(maximum, 0),
        default=default,
        quick_picks=quick_picks,
        full_available=received == 0 and total > 0,
        remaining_available=remaining > 0,
    )
