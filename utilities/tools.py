import re
from datetime import timedelta
from decimal import Context, Decimal, InvalidOperation

from utilities.exceptions import ValidationError

AMOUNT_QUANTUM = Decimal('0.00000001')
MIN_AMOUNT = Decimal('0.00000001')
MAX_BALANCE = Decimal('999999999999999.99999999')

# Prices span MIN_AMOUNT / MAX_BALANCE to MAX_BALANCE / MIN_AMOUNT (about 1e-23 to 1e23)
PRICE_QUANTUM = Decimal('1E-24')
PRICE_CONTEXT = Context(prec=60)

TICKER_PATTERN = re.compile(r"^[A-Z0-9]{3,16}$")

TIMEFRAME_UNITS = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "mnt": timedelta(days=30),
    "y": timedelta(days=365),
}


def validate_decimal(value: Decimal):
    # Check if the value is within the range
    if value < MIN_AMOUNT or value > MAX_BALANCE:
        return False
    return True


def to_amount(value, field: str = "amount") -> Decimal:
    """
    Convert a user supplied number into a positive fixed-point amount.

    Args:
        value: int, str or Decimal. Floats go through ``str`` to avoid binary noise.
        field (str): Name used in the error message.

    Returns:
        Decimal: The amount quantized to 8 decimal places.

    Raises:
        ValidationError: If the value is not a number or outside the accepted range.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    try:
        amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")

    if not amount.is_finite():
        raise ValidationError(f"Invalid {field}: {value!r}")
    if amount <= 0:
        raise ValidationError(f"{field.capitalize()} must be greater than zero")

    amount = amount.quantize(AMOUNT_QUANTUM)
    if not validate_decimal(amount):
        raise ValidationError(f"{field.capitalize()} is out of range")
    return amount


def normalize_ticker(ticker: str) -> str:
    if not isinstance(ticker, str):
        raise ValidationError("Ticker must be a string")
    ticker = ticker.strip().upper()
    if not TICKER_PATTERN.match(ticker):
        raise ValidationError(f"Invalid ticker '{ticker}'. Use 3-16 letters or digits")
    return ticker


def parse_timeframe(timeframe: str) -> timedelta:
    """
    Convert a timeframe such as ``15m``, ``1h``, ``7d``, ``1mnt`` or ``1y``
    into a timedelta.
    """
    timeframe = (timeframe or "").strip().lower()
    digits = len(timeframe) - len(timeframe.lstrip("0123456789"))

    if digits == 0 or digits == len(timeframe):
        raise ValidationError("Invalid timeframe format. Examples: 1m, 5m, 1h, 4h, 1d, 7d, 1mnt, 1y")

    count = int(timeframe[:digits])
    unit = timeframe[digits:]
    if unit not in TIMEFRAME_UNITS:
        raise ValidationError(f"Unknown timeframe unit: '{unit}'. Use: m, h, d, mnt, y")
    if count <= 0:
        raise ValidationError("Timeframe must be greater than zero")
    return TIMEFRAME_UNITS[unit] * count
