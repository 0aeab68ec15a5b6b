"""
Pack Purchase Flow - Buy or renew a pack through the SerdiPay payment endpoint
"""

import logging
import math
from decimal import Decimal
from typing import Any, Dict, Optional

from solifin.flows.base import PaymentFlow
from solifin.models import (
    CardPaymentDetails, FeeBreakdown, MobileMoneyDetails, PackOffer, ZERO
)
from solifin.models.enums import Currency, FeeKind, PaymentType, TransactionType
from solifin.services.balance_validator import ValidationResult, check_required
from solifin.services.fee_calculator import calculate_fees, quantize
from solifin.utils.payment_methods import (
    PaymentMethod, get_payment_method, validate_phone_number, format_full_phone_number
)

logger = logging.getLogger(__name__)

WALLET_METHOD = "solifin-wallet"


def card_payment_details(card: CardPaymentDetails) -> Dict[str, str]:
    """Card fields as SerdiPay expects them"""
    return {
        "cardNumber": card.card_number.replace(" ", ""),
        "cardHolder": card.card_holder,
        "expiryDate": card.expiry_date,
        "cvv": card.cvv,
    }


class PackPurchaseFlow(PaymentFlow):
    """
    Pack purchase or renewal

    The amount is not typed: one billing period costs the monthly price (in
    the debit currency) times the period length in months, and enough
    periods are bought to cover ``months``. Wallet payments are debited in USD,
    carry no fee and are balance-checked; mobile money and card payments are
    charged the purchase fee and settled outside the wallet.
    """

    kind = FeeKind.PACK_PURCHASE
    password_required = False

    def __init__(
        self,
        api,
        fee_resolver,
        pack: PackOffer,
        months: int = 1,
        renewal: bool = False,
        **kwargs
    ):
        super().__init__(api, fee_resolver, **kwargs)
        self.pack = pack
        self.months = 1
        self.set_months(months)
        self.renewal = renewal
        self.referral_code = ""
        self.no_sponsor_code = False
        self.payment_method: PaymentMethod = get_payment_method(WALLET_METHOD)
        self.mobile_money: Optional[MobileMoneyDetails] = None
        self.card: Optional[CardPaymentDetails] = None

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType.RENEW_PACK if self.renewal else TransactionType.PURCHASE_PACK

    @property
    def is_wallet(self) -> bool:
        return self.payment_method.payment_type == PaymentType.WALLET

    @property
    def checks_balance(self) -> bool:
        return self.is_wallet

    @property
    def debit_currency(self) -> Currency:
        return Currency.USD if self.is_wallet else self.currency

    # =======================
    # Form fields
    # =======================

    def set_months(self, months: int):
        months = int(months)
        if months < 1:
            raise ValueError("Duration must be at least one month")
        self.months = months

    def set_referral(self, referral_code: str = "", no_sponsor_code: bool = False):
        self.referral_code = (referral_code or "").strip()
        self.no_sponsor_code = no_sponsor_code

    def select_method(self, value: str) -> PaymentMethod:
        method = get_payment_method(value)
        if method is None:
            raise ValueError(f"Unknown payment method: {value}")
        self.payment_method = method
        return method

    def set_mobile_money(self, phone_number: str, phone_code: str = "+243", country: str = "CD"):
        self.mobile_money = MobileMoneyDetails(
            phone_number=phone_number, phone_code=phone_code, country=country
        )

    def set_card(self, card_number: str, card_holder: str, expiry_date: str, cvv: str):
        self.card = CardPaymentDetails(
            card_number=card_number, card_holder=card_holder, expiry_date=expiry_date, cvv=cvv
        )

    # =======================
    # Amounts
    # =======================

    @property
    def periods(self) -> int:
        return math.ceil(self.months / self.pack.subscription_step)

    @property
    def period_price(self) -> Optional[Decimal]:
        """Price of one billing period, None when the pack has no price in this currency"""
        price = self.pack.price_for(self.debit_currency)
        if price is None:
            return None
        return price * self.pack.subscription_step

    @property
    def amount(self) -> Optional[Decimal]:
        if self.period_price is None:
            return None
        return quantize(self.period_price * self.periods)

    def breakdown(self) -> FeeBreakdown:
        if self.schedule is None or self.amount is None:
            return FeeBreakdown.zero()
        if self.is_wallet:
            return calculate_fees(self.amount, ZERO)
        return calculate_fees(self.amount, self.schedule.fee_percentage)

    # =======================
    # Validation
    # =======================

    def _validate_form(self) -> ValidationResult:
        result = ValidationResult()
        price = self.pack.price_for(self.debit_currency)
        if price is None or price <= 0:
            result.add("amount", f"This pack has no price in {self.debit_currency.value}")

        if not self.renewal and not self.referral_code and not self.no_sponsor_code:
            result.add(
                "referral_code",
                "Please enter a referral code or tick 'I have no sponsor code'"
            )

        payment_type = self.payment_method.payment_type
        if payment_type == PaymentType.MOBILE_MONEY:
            details = self.mobile_money
            if details is None or not validate_phone_number(details.phone_number, details.country):
                result.add("phone_number", "Invalid phone number for the selected country")
        elif payment_type == PaymentType.CREDIT_CARD:
            card = self.card
            result.merge(check_required("card_number", card.card_number if card else None, "Card number is required"))
            result.merge(check_required("card_holder", card.card_holder if card else None, "Card holder is required"))
            result.merge(check_required("expiry_date", card.expiry_date if card else None, "Expiry date is required"))
            result.merge(check_required("cvv", card.cvv if card else None, "CVV is required"))

        return result

    def _payment_details(self) -> Dict[str, Any]:
        payment_type = self.payment_method.payment_type
        if payment_type == PaymentType.MOBILE_MONEY:
            return {
                "phoneNumber": format_full_phone_number(
                    self.mobile_money.phone_code, self.mobile_money.phone_number
                )
            }
        if payment_type == PaymentType.CREDIT_CARD:
            return card_payment_details(self.card)
        return {}

    def _confirmation_extra(self) -> Dict[str, Any]:
        action = "Renewal" if self.renewal else "Purchase"
        return {"details": [
            (action, self.pack.name or f"Pack #{self.pack.id}"),
            ("Duration", f"{self.months} month(s), {self.periods} period(s)"),
            ("Method", self.payment_method.display_name),
        ]}

    def _clear_form(self):
        self.months = 1
        self.referral_code = ""
        self.no_sponsor_code = False
        self.payment_method = get_payment_method(WALLET_METHOD)
        self.mobile_money = None
        self.card = None

    # =======================
    # Submission
    # =======================

    def _build_payload(self) -> Dict[str, Any]:
        confirmation = self.confirmation()
        breakdown = confirmation.breakdown
        payload: Dict[str, Any] = {
            "payment_method": self.payment_method.value,
            "payment_type": self.payment_method.payment_type.value,
            "transaction_type": self.transaction_type.value,
            "payment_details": self._payment_details(),
            "duration_months": self.months,
        }
        if not self.renewal:
            payload["referralCode"] = self.referral_code
            payload["noSponsorCode"] = self.no_sponsor_code
        payload.update({
            "amount": str(breakdown.amount),
            "currency": confirmation.currency.value,
            "fees": str(breakdown.fee),
            "packId": self.pack.id,
        })
        return payload

    async def _send(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        logger.info(
            f"{payload['transaction_type']} pack {payload['packId']} for "
            f"{payload['duration_months']} month(s) via {payload['payment_method']}"
        )
        return await self.api.serdipay_payment(payload, idempotency_key=idempotency_key)
