"""
Data Models - Pydantic models matching API responses
"""

import re
from decimal import Decimal
from typing import Optional, List, Dict, Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

from solifin.models.enums import (
    Currency, FeeKind, WithdrawalStatus, PaymentStatus, SUBSCRIPTION_STEPS
)

ZERO = Decimal("0.00")

T = TypeVar("T")


def _parse_money(value: Any) -> Any:
    """Accept formatted balances such as "1,234.50 $" or "12 000 FC" """
    if value is None or value == "":
        return ZERO
    if isinstance(value, str):
        cleaned = re.sub(r"[^0-9.\-]", "", value)
        return cleaned or ZERO
    return value


# =======================
# Fee Models
# =======================

class FeeSchedule(BaseModel):
    """Percentages used by one payment flow"""
    kind: FeeKind
    fee_percentage: Decimal = ZERO
    commission_percentage: Decimal = ZERO
    degraded: bool = False

    @classmethod
    def zero(cls, kind: FeeKind, degraded: bool = False) -> "FeeSchedule":
        return cls(kind=kind, degraded=degraded)


class FeeBreakdown(BaseModel):
    """Amount, fee, commission and total to debit"""
    amount: Decimal = ZERO
    fee: Decimal = ZERO
    commission: Decimal = ZERO
    total_fee: Decimal = ZERO
    total: Decimal = ZERO

    class Config:
        frozen = True

    @classmethod
    def zero(cls) -> "FeeBreakdown":
        return cls()


# =======================
# Wallet Models
# =======================

class WalletBalance(BaseModel):
    """Cached wallet balance per currency"""
    balance_usd: Decimal = ZERO
    balance_cdf: Decimal = ZERO

    @field_validator("balance_usd", "balance_cdf", mode="before")
    @classmethod
    def _clean(cls, value: Any) -> Any:
        return _parse_money(value)

    def for_currency(self, currency: Currency) -> Decimal:
        """Balance available in the given currency"""
        if Currency(currency) == Currency.CDF:
            return self.balance_cdf
        return self.balance_usd


class Recipient(BaseModel):
    """Transfer recipient as returned by the recipient lookup"""
    id: Optional[int] = None
    account_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        extra = "allow"


class TransferLine(BaseModel):
    """One recipient of a (possibly multiple) funds transfer"""
    recipient_account_id: str
    amount: Decimal
    breakdown: FeeBreakdown = Field(default_factory=FeeBreakdown.zero)
    recipient: Optional[Recipient] = None


# =======================
# Payment Detail Models
# =======================

class MobileMoneyDetails(BaseModel):
    """Mobile money payout / payment details"""
    phone_number: str
    phone_code: str = "+243"
    country: str = "CD"


class BankCardDetails(BaseModel):
    """Card account used to receive a withdrawal"""
    account_number: str
    account_name: str
    country: str = "CD"


class CardPaymentDetails(BaseModel):
    """Card used to pay through SerdiPay"""
    card_number: str
    card_holder: str
    expiry_date: str
    cvv: str


# =======================
# Pack Models
# =======================

class PackOffer(BaseModel):
    """Purchasable subscription tier"""
    id: int
    name: str = ""
    price: Decimal
    cdf_price: Optional[Decimal] = None
    subscription: str = Field("monthly", alias="abonnement")

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def subscription_step(self) -> int:
        """Months covered by one billing period"""
        return SUBSCRIPTION_STEPS.get((self.subscription or "").lower(), 1)

    def price_for(self, currency: Currency) -> Optional[Decimal]:
        """Monthly price in the given currency, None when the pack has none"""
        if Currency(currency) == Currency.CDF:
            return self.cdf_price
        return self.price


# =======================
# Withdrawal Models
# =======================

class WithdrawalRecord(BaseModel):
    """Withdrawal request as listed by the admin endpoints"""
    id: int
    user_id: Optional[int] = None
    amount: Decimal
    currency: Currency = Currency.USD
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[str] = None
    admin_note: Optional[str] = None
    created_at: Optional[str] = None
    user: Optional[Dict[str, Any]] = None

    class Config:
        extra = "allow"


class Page(BaseModel, Generic[T]):
    """One page of a Laravel paginator"""
    items: List[T] = Field(default_factory=list)
    current_page: int = 1
    last_page: int = 1
    per_page: int = 10
    total: int = 0

    @property
    def has_next(self) -> bool:
        return self.current_page < self.last_page


# =======================
# Referral Stats Models
# =======================

class GenerationCommission(BaseModel):
    """Completed commissions earned from one referral generation"""
    usd: Decimal = ZERO
    cdf: Decimal = ZERO
    total: Decimal = ZERO


class GeneralStats(BaseModel):
    """Headline referral numbers for a pack"""
    total_referrals: int = 0
    referrals_by_generation: List[int] = Field(default_factory=list)
    active_referrals: int = 0
    inactive_referrals: int = 0
    total_commission: Decimal = ZERO
    failed_commission: Decimal = ZERO
    best_generation: Optional[int] = None
    commissions_by_generation: List[GenerationCommission] = Field(default_factory=list)
    total_commission_usd: Decimal = ZERO
    total_commission_cdf: Decimal = ZERO


class PackStats(BaseModel):
    """Detailed referral statistics for one pack"""
    general_stats: GeneralStats = Field(default_factory=GeneralStats)
    progression: Dict[str, Any] = Field(default_factory=dict)
    latest_referrals: List[Dict[str, Any]] = Field(default_factory=list)
    financial_info: Dict[str, Any] = Field(default_factory=dict)
    all_referrals: List[Dict[str, Any]] = Field(default_factory=list)


class GenerationSummary(BaseModel):
    """Per-generation line of the referral tree"""
    generation: int
    referrals: int = 0
    commission_usd: Decimal = ZERO
    commission_cdf: Decimal = ZERO
    commission_total: Decimal = ZERO


# =======================
# Dashboard Models
# =======================

class CarouselItem(BaseModel):
    """Advert, job offer or business opportunity"""
    id: int
    titre: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    created_at: Optional[str] = None
    expiry_date: Optional[str] = None

    class Config:
        extra = "allow"

    @property
    def summary(self) -> str:
        """Description cut to the carousel card length"""
        if not self.description:
            return "No description"
        if len(self.description) > 120:
            return self.description[:120] + "..."
        return self.description


class CarouselFeed(BaseModel):
    """Dashboard carousel content"""
    publicites: List[CarouselItem] = Field(default_factory=list)
    offres_emploi: List[CarouselItem] = Field(default_factory=list, alias="offresEmploi")
    opportunites_affaires: List[CarouselItem] = Field(default_factory=list, alias="opportunitesAffaires")

    class Config:
        populate_by_name = True

