"""Field validators for the banking forms.

Each ``validate_*_field`` function has the ``Validator`` signature
``(value, form_snapshot) -> ValidationResult`` so it can be attached to a
``FieldDefinition`` directly.
"""

import re
from typing import Any, Mapping, Optional

from soprano.core.settings import settings
from soprano.forms.formatters import format_currency
from soprano.forms.schema import ValidationResult

UPI_DAILY_LIMIT = 100000
LARGE_TRANSACTION_THRESHOLD = 10000
MIN_LOAN_AMOUNT = 10000
MIN_EMI_TENURE_MONTHS = 6
MAX_EMI_TENURE_MONTHS = 360
MIN_ADDRESS_LENGTH = 20

_UPI_RE = re.compile(r"^[\w.-]+@\w+$")
_IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
_ACCOUNT_NUMBER_RE = re.compile(r"^\d{9,18}$")
_PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
_WHITESPACE_RE = re.compile(r"\s+")


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None


def validate_upi_id(upi: Optional[str]) -> ValidationResult:
    if not upi or not upi.strip():
        return ValidationResult(valid=False, error="UPI ID is required")

    if "@" not in upi:
        return ValidationResult(valid=False, error="UPI ID must contain @")

    if not _UPI_RE.match(upi):
        return ValidationResult(valid=False, error="Invalid UPI ID format")

    return ValidationResult(valid=True)


def validate_amount(amount: Optional[float], balance: float) -> ValidationResult:
    if amount is None or amount != amount or amount <= 0:
        return ValidationResult(valid=False, error="Enter a valid amount")

    if amount > balance:
        return ValidationResult(valid=False, error="Insufficient balance")

    if amount > UPI_DAILY_LIMIT:
        return ValidationResult(
            valid=False,
            error=f"Amount exceeds daily limit of {format_currency(UPI_DAILY_LIMIT)}",
        )

    if amount > LARGE_TRANSACTION_THRESHOLD:
        return ValidationResult(valid=True, warning="Large transaction - please verify details")

    return ValidationResult(valid=True)


def validate_ifsc(ifsc: Optional[str]) -> ValidationResult:
    if not ifsc or not ifsc.strip():
        return ValidationResult(valid=False, error="IFSC code is required")

    if not _IFSC_RE.match(ifsc.upper()):
        return ValidationResult(
            valid=False,
            error="Invalid IFSC format. Should be like SBIN0001234 (5th character must be 0)",
        )

    return ValidationResult(valid=True)


def validate_account_number(account_number: Optional[str]) -> ValidationResult:
    if not account_number or not account_number.strip():
        return ValidationResult(valid=False, error="Account number is required")

    if not _ACCOUNT_NUMBER_RE.match(account_number):
        return ValidationResult(valid=False, error="Account number must be 9-18 digits")

    return ValidationResult(valid=True)


def validate_upi_id_field(value: Any, form_snapshot: Mapping[str, Any]) -> ValidationResult:
    return validate_upi_id(str(value))


def validate_amount_field(value: Any, form_snapshot: Mapping[str, Any]) -> ValidationResult:
    balance = form_snapshot.get("balance")
    if balance is None:
        balance = settings.dialogue.DEFAULT_BALANCE
    return validate_amount(_to_number(value), float(balance))


def validate_loan_amount_field(value: Any, form_snapshot: Mapping[str, Any]) -> ValidationResult:
    amount = _to_number(value)
    if amount is None or amount <= 0:
        return ValidationResult(valid=False, error="Please enter a valid amount")
    if amount < MIN_LOAN_AMOUNT:
        return ValidationResult(valid=False, error="Minimum loan amount is 10,000 rupees")
    return ValidationResult(valid=True)


def validate_emi_tenure_field(value: Any, form_snapshot: Mapping[str, Any]) -> ValidationResult:
    tenure = _to_number(value)
    if tenure is None or tenure <= 0:
        return ValidationResult(valid=False, error="Please enter a valid tenure")
    if tenure < MIN_EMI_TENURE_MONTHS:
        return ValidationResult(valid=False, error=f"Minimum tenure is {MIN_EMI_TENURE_MONTHS} months")
    if tenure > MAX_EMI_TENURE_MONTHS:
        return ValidationResult(valid=False, error=f"Maximum tenure is {MAX_EMI_TENURE_MONTHS} months")
    return ValidationResult(valid=True)


def validate_address_field(value: Any, form_snapshot: Mapping[str, Any]) -> ValidationResult:
    address = str(value).strip()
    if not address:
        return ValidationResult(valid=False, error="Address is required")
    if len(address) < MIN_ADDRESS_LENGTH:
        return ValidationResult(valid=False, error="Please provide complete address")
    return ValidationResult(valid=True)


def normalize_pan(value: Any) -> str:
    """Uppercase a PAN and drop the spaces left by letter-by-letter dictation."""
    return _WHITESPACE_RE.sub("", str(value)).upper()


def validate_pan_field(value: Any, form_snapshot: Mapping[str, Any]) -> ValidationResult:
    pan = str(value).strip()
    if not pan:
        return ValidationResult(valid=False, error="PAN number is required")
    if not _PAN_RE.match(pan.upper()):
        return ValidationResult(valid=False, error="Invalid PAN format, for example A B C D E 1 2 3 4 F")
    return ValidationResult(valid=True)
