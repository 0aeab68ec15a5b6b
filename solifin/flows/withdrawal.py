"""
Withdrawal Flow - Wallet withdrawal to mobile money or a card account
"""

import logging
from typing import Any, Dict, Optional

from solifin.flows.base import PaymentFlow
from solifin.models import BankCardDetails, MobileMoneyDetails
from solifin.models.enums import FeeKind, PaymentType
from solifin.services.balance_validator import ValidationResult, check_amount, check_required
from solifin.utils.payment_methods import (
    PaymentMethod, get_payment_method, validate_phone_number, format_full_phone_number
)

logger = logging.getLogger(__name__)

PAYOUT_TYPES = (PaymentType.MOBILE_MONEY, PaymentType.CREDIT_CARD)


class WithdrawalFlow(PaymentFlow):
    """
    Withdrawal request for one wallet

    The debit is amount + withdrawal fee + sponsor commission, checked
    against the balance of the selected currency.
    """

    kind = FeeKind.WITHDRAWAL

    def __init__(self, api, fee_resolver, wallet_id: int, **kwargs):
        super().__init__(api, fee_resolver, **kwargs)
        self.wallet_id = wallet_id
        self.payment_method: Optional[PaymentMethod] = None
        self.mobile_money: Optional[MobileMoneyDetails] = None
        self.card_account: Optional[BankCardDetails] = None

    def select_method(self, value: str) -> PaymentMethod:
        """
        Select the payout method

        Raises:
            ValueError: Unknown method, or a method that cannot receive payouts
        """
        method = get_payment_method(value)
        if method is None or method.payment_type not in PAYOUT_TYPES:
            raise ValueError(f"Unsupported withdrawal method: {value}")
        self.payment_method = method
        return method

    def set_mobile_money(self, phone_number: str, phone_code: str = "+243", country: str = "CD"):
        self.mobile_money = MobileMoneyDetails(
            phone_number=phone_number, phone_code=phone_code, country=country
        )

    def set_card_account(self, account_number: str, account_name: str, country: str = "CD"):
        self.card_account = BankCardDetails(
            account_number=account_number, account_name=account_name, country=country
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
            details = self.card_account
            result.merge(check_required(
                "account_number", details.account_number if details else None,
                "Account number is required"
            ))
            result.merge(check_required(
                "account_name", details.account_name if details else None,
                "Account holder name is required"
            ))

        return result

    def _confirmation_extra(self) -> Dict[str, Any]:
        details = [("Method", self.payment_method.display_name)]
        if self.payment_method.payment_type == PaymentType.MOBILE_MONEY:
            details.append(("Phone", format_full_phone_number(
                self.mobile_money.phone_code, self.mobile_money.phone_number
            )))
        else:
            details.append(("Account", f"{self.card_account.account_name} ({self.card_account.account_number})"))
        return {"details": details}

    def _clear_form(self):
        self.payment_method = None
        self.mobile_money = None
        self.card_account = None

    def _build_payload(self) -> Dict[str, Any]:
        confirmation = self.confirmation()
        breakdown = confirmation.breakdown
        payload: Dict[str, Any] = {
            "amount": str(breakdown.amount),
            "payment_method": self.payment_method.value,
            "payment_type": self.payment_method.payment_type.value,
            "currency": confirmation.currency.value,
            "withdrawal_fee": str(breakdown.fee),
            "referral_commission": str(breakdown.commission),
            "total_amount": str(breakdown.total),
            "fee_percentage": str(confirmation.schedule.fee_percentage),
        }

        if self.payment_method.payment_type == PaymentType.MOBILE_MONEY:
            payload["phone_number"] = format_full_phone_number(
                self.mobile_money.phone_code, self.mobile_money.phone_number
            )
            payload["country"] = self.mobile_money.country
        else:
            card = self.card_account
            payload["account_number"] = card.account_number
            payload["account_name"] = card.account_name
            payload["country"] = card.country
            payload["payment_details"] = {
                "account_number": card.account_number,
                "account_name": card.account_name,
                "country": card.country,
            }

        return payload

    async def _send(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        logger.info(
            f"Requesting withdrawal of {payload['amount']} {payload['currency']} "
            f"from wallet {self.wallet_id} via {payload['payment_method']}"
        )
        return await self.api.request_withdrawal(
            self.wallet_id, payload, idempotency_key=idempotency_key
        )
