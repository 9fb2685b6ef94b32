"""
Decimal money helpers

Amounts are Decimal everywhere inside the ledger and strings inside event
payloads, so no binary float ever touches a balance. Input amounts are
rounded once when a command is parsed; derived amounts (tax, percentages)
are rounded where they are computed.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from pydantic import AfterValidator

from site_ledger.kernel.errors import ValidationError

MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """
    Convert a numeric value to Decimal without rounding

    Floats go through str() so 0.1 stays 0.1.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Cannot interpret {value!r} as an amount")
    try:
        if isinstance(value, float):
            return Decimal(str(value))
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Cannot interpret {value!r} as an amount") from e


def round_money(
    value: Decimal | int | float | str, quantum: Decimal = MONEY_QUANTUM
) -> Decimal:
    """Round half-up to the money quantum (0.01 by default)"""
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def percentage(part: Decimal, total: Decimal) -> Decimal:
    """part / total * 100 rounded to 2 places; 0 when total is 0"""
    if not total:
        return ZERO
    return round_money(part * 100 / total)


def money_str(value: Decimal) -> str:
    """Serialize an amount for event payloads and snapshots"""
    return str(round_money(value))


# Amount field type for commands: parsed as Decimal, rounded half-up to 0.01
Money = Annotated[Decimal, AfterValidator(round_money)]
