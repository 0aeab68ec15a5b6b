"""
Virtual Purchase Flow - Top up virtual balance with mobile money or a card
"""

import logging
from typing import Any, Dict, Optional

from solifin.flows.base import PaymentFlow
from solifin.flows.pack_purchase import card_payment_details
from solifin.models import CardPaymentDetails, MobileMoneyDetails
from solifin.models.enums import FeeKind, PaymentType, TransactionType
from solifin.services.balance_validator import ValidationResult, check_amount, check_required
from solifin.utils.payment_methods import (
    PaymentMethod, get_payment_method, validate_phone_number, format_full_phone_number
)

logger = logging.getLogger(__name__)

EXTERNAL_TYPES = (PaymentType.MOBILE_MONEY, PaymentType.CREDIT_CARD)


class VirtualPurchaseFlow(PaymentFlow):
    """Purchase paid from outside the wallet, so no balance gate and no password"""

    kind = FeeKind.VIRTUAL_PURCHASE
    password_required = False

    def __init__(self, api, fee_resolver, **kwargs):
        super().__init__(api, fee_resolver, **kwargs)
        self.payment_method: Optional[PaymentMethod] = None
        self.mobile_money: Optional[MobileMoneyDetails] = None
        self.card: Optional[CardPaymentDetails] = None

    @property
    def checks_balance(self) -> bool:
        return False

    def select_method(self, value: str) -> PaymentMethod:
        method = get_payment_method(value)
        if method is None or method.payment_type not in EXTERNAL_TYPES:
            raise ValueError(f"Unsupported payment method: {value}")
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

    def _validate_form(self) -> ValidationResult:
        result = check_amount(self.amount)

        if self.payment_method is None:
            return result.add("payment_method", "Please select a payment method")

        if self.payment_method.payment_type == PaymentType.MOBILE_MONEY:
            details = self.mobile_money
            if details is None or not validate_phone_number(details.phone_number, details.country):
                result.add("phone_number", "Invalid phone number for the selected country")
        else:
            card = self.card
            result.merge(check_required("card_number", card.card_number if card else None, "Card number is required"))
            result.merge(check_required("card_holder", card.card_holder if card else None, "Card holder is required"))
            result.merge(check_required("expiry_date", card.expiry_date if card else None, "Expiry date is required"))
            result.merge(check_required("cvv", card.cvv if card else None, "CVV is required"))

        return result

    def _confirmation_extra(self) -> Dict[str, Any]:
        return {"details": [("Method", self.payment_method.display_name)]}

    def _clear_form(self):
        self.payment_method = None
        self.mobile_money = None
        self.card = None

    def _build_payload(self) -> Dict[str, Any]:
        confirmation = self.confirmation()
        breakdown = confirmation.breakdown
        payload: Dict[str, Any] = {
            "payment_method": self.payment_method.value,
            "currency": confirmation.currency.value,
            "amount": str(breakdown.amount),
            "fees": str(breakdown.fee),
            "total": str(breakdown.total),
            "payment_type": self.payment_method.payment_type.value,
            "transaction_type": TransactionType.PURCHASE_VIRTUAL.value,
        }

        if self.payment_method.payment_type == PaymentType.MOBILE_MONEY:
            payload["payment_details"] = {
                "phoneNumber": format_full_phone_number(
                    self.mobile_money.phone_code, self.mobile_money.phone_number
                )
            }
            payload["telecom"] = self.payment_method.telecom_code or self.payment_method.value
        else:
            payload["payment_details"] = card_payment_details(self.card)

        return payload

    async def _send(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        logger.info(
            f"Virtual purchase of {payload['amount']} {payload['currency']} "
            f"via {payload['payment_method']}"
        )
        return await self.api.serdipay_payment(payload, idempotency_key=idempotency_key)
