"""
Balance Validator - Submit gates shared by the payment forms
"""

from decimal import Decimal
from typing import Dict, Optional

from solifin.flows.errors import FormValidationError
from solifin.models import WalletBalance
from solifin.models.enums import Currency

INSUFFICIENT_BALANCE = "Insufficient balance to cover the amount and fees"


class ValidationResult:
    """Ordered field -> message mapping, empty when the form is valid"""

    def __init__(self, errors: Optional[Dict[str, str]] = None):
        self.errors: Dict[str, str] = dict(errors or {})

    @property
    def ok(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        return f"ValidationResult({self.errors!r})"

    def add(self, field: str, message: str) -> "ValidationResult":
        """Record an error; the first message for a field wins"""
        self.errors.setdefault(field, message)
        return self

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        for field, message in other.errors.items():
            self.add(field, message)
        return self

    def raise_for_errors(self):
        if self.errors:
            raise FormValidationError(self.errors)


def check_balance(
    total: Decimal,
    currency: Currency,
    balance: WalletBalance,
    field: str = "amount"
) -> ValidationResult:
    """
    Compare total to debit against the balance of the selected currency

    Args:
        total: Amount plus fees and commission
        currency: Currency being debited
        balance: Cached or freshly fetched wallet balance
        field: Form field the error is attached to

    Returns:
        ValidationResult with an insufficient-balance error when
        ``total > balance[currency]``
    """
    result = ValidationResult()
    if total > balance.for_currency(currency):
        result.add(field, INSUFFICIENT_BALANCE)
    return result


def check_amount(amount: Optional[Decimal], field: str = "amount") -> ValidationResult:
    """Amount must be present and strictly positive"""
    result = ValidationResult()
    if amount is None or amount <= 0:
        result.add(field, "Please enter a valid amount")
    return result


def check_required(field: str, value: Optional[str], message: str) -> ValidationResult:
    """Field must be present and not blank"""
    result = ValidationResult()
    if value is None or not str(value).strip():
        result.add(field, message)
    return result
