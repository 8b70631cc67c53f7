"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation
import re

from shopledger.domain.entities import quantize
from shopledger.domain.errors import ValidationError


def parse_amount(amount_str: str) -> Decimal:
    """Parse a money amount string into a Decimal rounded to cents.

    Handles various formats:
    - "123.45"
    - "Rs. 123.45", "$123.45"
    - "1,234.56"

    Ledger amounts carry their direction separately, so negative values
    ("-5", "(5.00)") are rejected.

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValidationError: If amount string cannot be parsed or is negative
    """
    if amount_str is None or not str(amount_str).strip():
        raise ValidationError("Empty amount string")

    amount_str = str(amount_str).strip()

    if amount_str.startswith("(") and amount_str.endswith(")"):
        raise ValidationError(f"Amount cannot be negative: '{amount_str}'")

    # Remove currency symbols
    amount_str = re.sub(r"(?i)^rs\.?|[$€£¥₨]", "", amount_str)

    # Remove commas
    amount_str = amount_str.replace(",", "").strip()

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValidationError(f"Could not parse amount '{amount_str}'")

    if not amount.is_finite():
        raise ValidationError(f"Could not parse amount '{amount_str}'")
    if amount < 0:
        raise ValidationError(f"Amount cannot be negative: '{amount_str}'")
    return quantize(amount)
