"""
Enums - Status and type definitions matching API
"""

from enum import Enum


class Currency(str, Enum):
    """Wallet currencies"""
    USD = "USD"
    CDF = "CDF"

    @property
    def symbol(self) -> str:
        return CURRENCY_SYMBOLS[self]


CURRENCY_SYMBOLS = {
    Currency.USD: "$",
    Currency.CDF: "FC",
}


class PaymentType(str, Enum):
    """Generic payment type values"""
    WALLET = "wallet"
    MOBILE_MONEY = "mobile-money"
    CREDIT_CARD = "credit-card"


class TransactionType(str, Enum):
    """SerdiPay transaction types"""
    PURCHASE_PACK = "purchase_pack"
    RENEW_PACK = "renew_pack"
    PURCHASE_VIRTUAL = "purchase_virtual"


class FeeKind(str, Enum):
    """Which fee schedule a flow resolves"""
    TRANSFER = "transfer"
    WITHDRAWAL = "withdrawal"
    PACK_PURCHASE = "pack"
    VIRTUAL_PURCHASE = "virtual"


class FlowState(str, Enum):
    """Confirmation / submission flow states"""
    IDLE = "idle"
    AWAITING_RECIPIENT_LOOKUP = "awaiting_recipient_lookup"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


class WithdrawalStatus(str, Enum):
    """Withdrawal request status values"""
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"


class PaymentStatus(str, Enum):
    """Withdrawal payout status values"""
    PENDING = "pending"
    INITIATED = "initiated"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    COMPLETED = "completed"


# Months per billing period, keyed by every spelling the API returns
SUBSCRIPTION_STEPS = {
    "monthly": 1,
    "mensuel": 1,
    "quarterly": 3,
    "trimestriel": 3,
    "biannual": 6,
    "semestriel": 6,
    "annual": 12,
    "yearly": 12,
    "annuel": 12,
    "triennal": 36,
    "quinquennal": 60,
}
