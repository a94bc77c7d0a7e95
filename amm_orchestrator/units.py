"""
Decimal Unit Converter

Converts between human-readable decimal strings and integer contract units
scaled by ``10 ** decimals``. Never touches binary floating point: parsing
goes through ``Decimal`` and scaling is done on the integer coefficient, so
results do not depend on the active decimal context precision.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Optional, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

# Values below this are displayed as "< 0.000001"
DISPLAY_MIN = Decimal("0.000001")

# u128 has 39 digits; anything far beyond that is not a real amount
MAX_CONTRACT_DIGITS = 78

COMPACT_UNITS = (
    (Decimal(10) ** 9, "B"),
    (Decimal(10) ** 6, "M"),
    (Decimal(10) ** 3, "K"),
)


def _clean(value: str) -> str:
    """Drop thousands separators and surrounding whitespace"""
    return value.replace(",", "").strip()


def parse_decimal(value: Union[str, int, Decimal]) -> Decimal:
    """
    Parse a user-typed amount into a finite, non-negative Decimal

    Accepts plain and scientific notation ("1.5", "1e-3", "2E+4") and
    thousands separators ("1,000.5"). Empty input parses as zero.

    Raises:
        ValidationError: If the value is not numeric, not finite, or negative
    """
    if isinstance(value, Decimal):
        parsed = value
    else:
        text = _clean(str(value))
        if not text:
            return Decimal(0)
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            raise ValidationError.invalid_amount(str(value))

    if not parsed.is_finite():
        raise ValidationError.invalid_amount(str(value))
    if parsed < 0:
        raise ValidationError.invalid_amount(str(value))
    return parsed


def parse_contract_units(value: Union[str, int, Decimal], decimals: int) -> int:
    """
    Strictly convert a decimal amount into integer contract units

    Fractional digits beyond ``decimals`` are truncated, never rounded up.

    Args:
        value: Human-readable amount
        decimals: Token decimal exponent

    Returns:
        Amount in contract units

    Raises:
        ValidationError: If the value is not a valid non-negative number,
            or has more than MAX_CONTRACT_DIGITS integer digits once scaled
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")

    sign, digits, exponent = parse_decimal(value).as_tuple()
    if not any(digits):
        return 0
    # Digit count of the scaled integer part, checked before any power of ten
    shift = exponent + decimals
    kept = len(digits) + shift
    if kept <= 0:
        return 0
    if kept > MAX_CONTRACT_DIGITS:
        raise ValidationError.invalid_amount(str(value))
    if shift >= 0:
        return int("".join(map(str, digits))) * 10 ** shift
    # Dropping the trailing digits truncates toward zero
    return int("".join(map(str, digits[:kept])))


def to_contract_units(value: str, decimals: int) -> str:
    """
    Lenient conversion used while the user is typing

    Invalid or negative input returns "0"; callers that need the reason
    run ``parse_contract_units`` (the Plan Builder does before building).

    Example:
        to_contract_units("1.5", 24) == "1500000000000000000000000"
    """
    try:
        return str(parse_contract_units(value, decimals))
    except ValidationError as e:
        logger.warning(f"Could not convert amount {value!r} ({decimals} decimals): {e.message}")
        return "0"


def from_contract_units(raw: Union[str, int], decimals: int) -> Decimal:
    """
    Exact Decimal value of an integer contract amount

    Raises:
        ValidationError: If ``raw`` is not an integer string
    """
    try:
        amount = int(raw)
    except (TypeError, ValueError):
        raise ValidationError.invalid_amount(str(raw))
    sign, digits, _ = Decimal(amount).as_tuple()
    return Decimal((sign, digits, -decimals))


def to_display_string(
    raw: Union[str, int],
    decimals: int,
    max_fraction_digits: Optional[int] = None,
) -> str:
    """
    Render contract units as a plain decimal string

    Truncates to ``max_fraction_digits`` (default: ``decimals``) and strips
    trailing zeros. Integer arithmetic only.

    Example:
        to_display_string("1500000000000000000000000", 24) == "1.5"
    """
    amount = int(raw)
    if max_fraction_digits is None or max_fraction_digits > decimals:
        max_fraction_digits = decimals

    sign = "-" if amount < 0 else ""
    whole, fraction = divmod(abs(amount), 10 ** decimals)
    fraction_text = str(fraction).rjust(decimals, "0")[:max_fraction_digits].rstrip("0")
    if fraction_text:
        return f"{sign}{whole}.{fraction_text}"
    return f"{sign}{whole}"


def format_compact(raw: Union[str, int], decimals: int, max_fraction_digits: int = 6) -> str:
    """
    Short display form with K/M/B abbreviations

    Rounds down everywhere. Non-zero values below 0.000001 show as
    "< 0.000001". Unparseable input shows as "0".
    """
    try:
        value = from_contract_units(raw, decimals)
    except ValidationError:
        logger.warning(f"Failed to format amount {raw!r}")
        return "0"

    if value == 0:
        return "0"
    if value < DISPLAY_MIN:
        return f"< {DISPLAY_MIN}"

    with localcontext() as ctx:
        ctx.prec = len(str(abs(int(raw)))) + decimals + 10
        for threshold, suffix in COMPACT_UNITS:
            if value >= threshold:
                scaled = (value / threshold).quantize(Decimal("0.01"), rounding=ROUND_DOWN)
                return f"{scaled}{suffix}"
        truncated = value.quantize(Decimal(1).scaleb(-max_fraction_digits), rounding=ROUND_DOWN)

    text = f"{truncated:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
