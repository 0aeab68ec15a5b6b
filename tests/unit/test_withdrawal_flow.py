"""
Unit tests for the withdrawal flow.
"""

import pytest
import pytest_asyncio
from decimal import Decimal

from solifin.flows.withdrawal import WithdrawalFlow
from solifin.models.enums import Currency, FlowState
from solifin.services.balance_validator import INSUFFICIENT_BALANCE


@pytest_asyncio.fixture
async def flow(mock_api, fee_resolver, wallet_balance):
    """Opened withdrawal flow on wallet 4 (2.5% fee, 1% commission)."""
    flow = WithdrawalFlow(mock_api, fee_resolver, wallet_id=4, balance=wallet_balance)
    await flow.open()
    return flow


class TestWithdrawalValidation:
    """Test withdrawal-specific form checks."""

    @pytest.mark.asyncio
    async def test_breakdown_includes_commission(self, flow):
        flow.set_amount("100")
        breakdown = flow.breakdown()

        assert breakdown.fee == Decimal("2.50")
        assert breakdown.commission == Decimal("1.00")
        assert breakdown.total == Decimal("103.50")

    @pytest.mark.asyncio
    async def test_method_required(self, flow):
        flow.set_amount("100")
        assert flow.validate().errors == {"payment_method": "Please select a payment method"}

    @pytest.mark.asyncio
    async def test_wallet_cannot_receive_payout(self, flow):
        with pytest.raises(ValueError):
            flow.select_method("solifin-wallet")

    @pytest.mark.asyncio
    async def test_invalid_phone(self, flow):
        flow.set_amount("100")
        flow.select_method("m-pesa")
        flow.set_mobile_money("12345")

        assert flow.validate().errors == {
            "phone_number": "Invalid phone number for the selected country"
        }

    @pytest.mark.asyncio
    async def test_phone_missing(self, flow):
        flow.set_amount("100")
        flow.select_method("airtel-money")
        assert "phone_number" in flow.validate().errors

    @pytest.mark.asyncio
    async def test_card_account_name_required(self, flow):
        flow.set_amount("100")
        flow.select_method("visa")
        flow.set_card_account("4111111111111111", "  ")

        assert flow.validate().errors == {"account_name": "Account holder name is required"}

    @pytest.mark.asyncio
    async def test_balance_checked_in_selected_currency(self, flow):
        flow.set_currency(Currency.CDF)
        flow.select_method("orange-money")
        flow.set_mobile_money("812345678")

        flow.set_amount("50000")
        assert flow.validate().ok

        flow.set_amount("99000")
        assert flow.validate().errors == {"amount": INSUFFICIENT_BALANCE}


class TestWithdrawalSubmission:
    """Test withdrawal payloads."""

    @pytest.mark.asyncio
    async def test_mobile_money_payload(self, mock_api, flow):
        flow.set_amount("100")
        flow.select_method("orange-money")
        flow.set_mobile_money("812345678", phone_code="+243", country="CD")

        confirmation = await flow.prepare()
        assert ("Phone", "243812345678") in confirmation.rows()

        await flow.submit("secret")

        assert flow.state == FlowState.SUCCESS
        wallet_id, payload = mock_api.request_withdrawal.await_args.args
        assert wallet_id == 4
        assert payload == {
            "amount": "100.00",
            "payment_method": "orange-money",
            "payment_type": "mobile-money",
            "currency": "USD",
            "withdrawal_fee": "2.50",
            "referral_commission": "1.00",
            "total_amount": "103.50",
            "fee_percentage": "2.5",
            "password": "secret",
            "phone_number": "243812345678",
            "country": "CD",
        }
        assert mock_api.request_withdrawal.await_args.kwargs["idempotency_key"] == confirmation.idempotency_key

    @pytest.mark.asyncio
    async def test_card_payload(self, mock_api, flow):
        flow.set_amount("40")
        flow.select_method("mastercard")
        flow.set_card_account("5500000000000004", "Jean Kabila", country="CD")

        await flow.prepare()
        await flow.submit("secret")

        payload = mock_api.request_withdrawal.await_args.args[1]
        assert payload["payment_type"] == "credit-card"
        assert payload["account_number"] == "5500000000000004"
        assert payload["account_name"] == "Jean Kabila"
        assert payload["country"] == "CD"
        assert payload["payment_details"] == {
            "account_number": "5500000000000004",
            "account_name": "Jean Kabila",
            "country": "CD",
        }
        assert "phone_number" not in payload

    @pytest.mark.asyncio
    async def test_no_lookup_step(self, mock_api, flow):
        flow.set_amount("10")
        flow.select_method("afrimoney")
        flow.set_mobile_money("812345678")

        await flow.prepare()

        assert flow.state == FlowState.CONFIRMING
        mock_api.get_recipient_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_changes_after_confirmation_are_not_sent(self, mock_api, flow):
        flow.set_amount("100")
        flow.select_method("orange-money")
        flow.set_mobile_money("812345678")
        confirmation = await flow.prepare()

        flow.set_currency(Currency.CDF)
        flow.set_amount("90000")
        flow.select_method("visa")
        await flow.submit("secret")

        payload = mock_api.request_withdrawal.await_args.args[1]
        assert payload["currency"] == "USD"
        assert payload["amount"] == "100.00"
        assert payload["total_amount"] == "103.50"
        assert payload["payment_method"] == "orange-money"
        assert payload["password"] == "secret"
        assert "password" not in confirmation.payload
