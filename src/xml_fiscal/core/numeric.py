"""
Numeric coercion, tolerance comparison and small formatting helpers.
"""
from decimal import Decimal, ROUND_DOWN
import math
import re
from typing import Optional

# Tolerance for monetary comparisons: 1% of the expected value, R$ 0,10 minimum
AMOUNT_TOLERANCE_PERCENT = 0.01
AMOUNT_TOLERANCE_MIN = 0.10

ACCESS_KEY_LENGTH = 44

# Document number inside the access key (0-indexed, end exclusive)
DOC_NUMBER_START_POS = 25
DOC_NUMBER_END_POS = 34

FOUR_PLACES = Decimal("0.0001")


def to_float(value: Optional[str]) -> float:
    """Parse a decimal number as written in fiscal XML (dot separator), 0.0 on failure"""
    if value is None:
        return 0.0
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(parsed) or math.isinf(parsed):
        return 0.0
    return parsed


def amounts_close(actual: Optional[float], expected: Optional[float]) -> bool:
    """
    Compare two monetary values with the reconciliation tolerance.

    Tolerance is 1% of the expected value or R$ 0,10, whichever is larger.
    """
    actual = actual or 0.0
    expected = expected or 0.0
    diff = abs(actual - expected)
    tolerance = max(AMOUNT_TOLERANCE_MIN, abs(expected) * AMOUNT_TOLERANCE_PERCENT)
    return diff <= tolerance


def truncate_to_four_decimals(value: float) -> float:
    """Truncate (never round) to 4 decimal places"""
    if not value:
        return 0.0
    # repr keeps 0.29 as "0.29"; 0.29 * 10000 would land below 2900
    return float(Decimal(repr(float(value))).quantize(FOUR_PLACES, rounding=ROUND_DOWN))


def only_digits(value: Optional[str]) -> str:
    """Remove all non-numeric characters"""
    if not value:
        return ""
    return re.sub(r'\D', '', value)


def normalize_access_key(value: Optional[str]) -> str:
    """Return the 44-digit access key or an empty string"""
    digits = only_digits(value)
    return digits if len(digits) == ACCESS_KEY_LENGTH else ""


def numero_da_chave(chave: Optional[str]) -> str:
    """
    Extract the document number from an access key.

    The number is stored in digits 26-34 of the key; leading zeros are dropped.
    """
    if not chave or len(chave) != ACCESS_KEY_LENGTH:
        return ""
    return chave[DOC_NUMBER_START_POS:DOC_NUMBER_END_POS].lstrip("0")


def format_date(date_str: Optional[str]) -> str:
    """
    Format an ISO date (yyyy-mm-dd or yyyy-mm-ddThh:mm:ss-03:00) as dd/mm/yyyy.

    Returns the original string when it does not look like an ISO date.
    """
    if not date_str:
        return ""

    date_part = date_str.split("T")[0].strip()
    parts = [p.strip() for p in date_part.split("-")]
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return date_str

    year, month, day = parts
    return f"{int(day):02d}/{int(month):02d}/{year}"


def format_cnpj_cpf(value: Optional[str]) -> str:
    """Apply the CPF (11 digits) or CNPJ (14 digits) mask"""
    if not value:
        return ""
    digits = only_digits(value)
    if len(digits) == 11:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
    if len(digits) == 14:
        return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
    return value


def format_currency(value: Optional[float]) -> str:
    """Format as Brazilian currency: R$ 1.234,56"""
    formatted = f"{(value or 0.0):,.2f}"
    formatted = formatted.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {formatted}"


def format_percent(value: Optional[float]) -> str:
    """Format as percentage with two decimals"""
    return f"{(value or 0.0):.2f}%"
