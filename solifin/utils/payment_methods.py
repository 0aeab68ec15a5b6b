"""
Payment Methods Configuration
Defines the mobile money operators, card networks and the SOLIFIN wallet
"""

import re
from typing import Dict, List, Optional
from dataclasses import dataclass

from solifin.models.enums import PaymentType


@dataclass
class PaymentMethod:
    """Payment method configuration"""
    value: str  # Identifier sent to the API (e.g., "m-pesa")
    display_name: str  # Display name (e.g., "M-Pesa")
    payment_type: PaymentType
    telecom_code: Optional[str] = None  # SerdiPay operator code (mobile money only)


# ============================================================================
# PAYMENT METHOD DEFINITIONS
# ============================================================================

PAYMENT_METHODS: Dict[str, PaymentMethod] = {
    # Mobile money
    "orange-money": PaymentMethod(
        value="orange-money",
        display_name="Orange Money",
        payment_type=PaymentType.MOBILE_MONEY,
        telecom_code="OM"
    ),
    "m-pesa": PaymentMethod(
        value="m-pesa",
        display_name="M-Pesa",
        payment_type=PaymentType.MOBILE_MONEY,
        telecom_code="MP"
    ),
    "afrimoney": PaymentMethod(
        value="afrimoney",
        display_name="Afrimoney",
        payment_type=PaymentType.MOBILE_MONEY,
        telecom_code="AF"
    ),
    "airtel-money": PaymentMethod(
        value="airtel-money",
        display_name="Airtel Money",
        payment_type=PaymentType.MOBILE_MONEY,
        telecom_code="AM"
    ),

    # Cards
    "visa": PaymentMethod(
        value="visa",
        display_name="Visa",
        payment_type=PaymentType.CREDIT_CARD
    ),
    "mastercard": PaymentMethod(
        value="mastercard",
        display_name="Mastercard",
        payment_type=PaymentType.CREDIT_CARD
    ),
    "american-express": PaymentMethod(
        value="american-express",
        display_name="American Express",
        payment_type=PaymentType.CREDIT_CARD
    ),

    # Internal
    "solifin-wallet": PaymentMethod(
        value="solifin-wallet",
        display_name="SOLIFIN Wallet",
        payment_type=PaymentType.WALLET
    ),
}


# Digits expected after the country code
PHONE_LENGTHS: Dict[str, int] = {
    "CD": 9,   # DR Congo
    "CG": 9,   # Congo-Brazzaville
    "CI": 8,   # Côte d'Ivoire
    "CM": 9,   # Cameroon
    "SN": 9,   # Senegal
    "FR": 9,
    "BE": 9,
    "CA": 10,
    "US": 10,
    "GB": 10,
    "DE": 10,
}
DEFAULT_PHONE_LENGTH = 9


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def get_payment_method(value: str) -> Optional[PaymentMethod]:
    """Get payment method by value"""
    return PAYMENT_METHODS.get(value)


def get_methods_for_type(payment_type: PaymentType) -> List[PaymentMethod]:
    """All methods of one payment type, in display order"""
    return [m for m in PAYMENT_METHODS.values() if m.payment_type == PaymentType(payment_type)]


def format_payment_method_display(value: str) -> str:
    """Format payment method for display"""
    method = get_payment_method(value)
    if method:
        return method.display_name
    return value.replace("-", " ").replace("_", " ").title()


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def validate_phone_number(phone_number: str, country: str) -> bool:
    """
    Check a local phone number against the country's expected length

    Args:
        phone_number: Number without country code, any formatting
        country: ISO 3166 alpha-2 code

    Returns:
        True when the digit count matches
    """
    digits = digits_only(phone_number)
    if not digits:
        return False
    expected = PHONE_LENGTHS.get((country or "").upper(), DEFAULT_PHONE_LENGTH)
    return len(digits) == expected


def format_full_phone_number(phone_code: str, phone_number: str) -> str:
    """
    Join country code and local number the way SerdiPay expects

    Example:
        >>> format_full_phone_number("+243", "0812 345 678")
        '243812345678'
    """
    code = (phone_code or "").replace("+", "").strip()
    number = digits_only(phone_number)
    if number.startswith("0"):
        number = number[1:]
    return f"{code}{number}"
