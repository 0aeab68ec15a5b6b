"""
Unit tests for the funds transfer flow.

Tests cover:
- Breakdown recomputation and submit gates
- Single and multiple recipient payloads
- Recipient lookup failures
- Double-submit guard, retry with the same idempotency key
- Fresh balance check right before submission
"""

import asyncio

import pytest
import pytest_asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

from solifin.api.errors import NotFoundError, ServerError
from solifin.flows.errors import (
    FlowError,
    FormValidationError,
    InsufficientBalanceError,
    InvalidTransitionError,
    RecipientLookupError,
)
from solifin.flows.transfer import TransferFlow
from solifin.models import Recipient, WalletBalance
from solifin.models.enums import FlowState
from solifin.services.balance_validator import INSUFFICIENT_BALANCE
from solifin.services.fee_resolver import FeeResolver


@pytest_asyncio.fixture
async def flow(mock_api, fee_resolver, wallet_balance):
    """Opened transfer flow from account SOL001 with 500 USD."""
    flow = TransferFlow(mock_api, fee_resolver, sender_account_id="SOL001", balance=wallet_balance)
    await flow.open()
    return flow


class TestBreakdown:
    """Test synchronous fee recomputation."""

    @pytest.mark.asyncio
    async def test_amount_change_recomputes(self, flow):
        flow.set_recipient("SOL002", "100")
        assert flow.breakdown().total == Decimal("103.00")

        flow.set_amount("200")
        assert flow.breakdown().total == Decimal("206.00")

    @pytest.mark.asyncio
    async def test_invalid_amount_gives_zero(self, flow):
        flow.set_recipient("SOL002", "abc")
        assert flow.breakdown().total == Decimal("0")

    @pytest.mark.asyncio
    async def test_open_does_not_refetch_given_balance(self, mock_api, flow):
        mock_api.get_wallet_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_open_fetches_missing_balance(self, mock_api, fee_resolver):
        flow = TransferFlow(mock_api, fee_resolver)
        await flow.open()

        mock_api.get_wallet_balance.assert_awaited_once()
        assert flow.balance.balance_usd == Decimal("500.00")


class TestValidation:
    """Test the submit gates."""

    @pytest.mark.asyncio
    async def test_empty_form(self, flow):
        errors = flow.validate().errors
        assert errors["recipient_account_id"] == "Recipient account ID is required"
        assert errors["amount"] == "Please enter a valid amount"

    @pytest.mark.asyncio
    async def test_self_transfer(self, flow):
        flow.set_recipient("SOL001", "10")
        assert flow.validate().errors["recipient_account_id"] == "You cannot transfer funds to yourself"

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, flow):
        """490 + 2% + 1% exceeds 500."""
        flow.set_recipient("SOL002", "490")
        flow.password = "secret"

        assert flow.validate().errors == {"amount": INSUFFICIENT_BALANCE}
        assert not flow.can_submit

    @pytest.mark.asyncio
    async def test_password_required_to_submit(self, flow):
        flow.set_recipient("SOL002", "100")
        assert flow.validate().ok
        assert not flow.can_submit

        flow.password = "secret"
        assert flow.can_submit

    @pytest.mark.asyncio
    async def test_multiple_errors_are_indexed(self, flow):
        flow.add_recipient("SOL002", "10")
        flow.add_recipient("SOL001", "0")
        errors = flow.validate().errors

        assert errors["recipient_account_id_1"] == "You cannot transfer funds to yourself"
        assert errors["amount_1"] == "Please enter a valid amount"

    @pytest.mark.asyncio
    async def test_multiple_balance_error_on_total(self, flow):
        flow.add_recipient("SOL002", "300")
        flow.add_recipient("SOL003", "200")
        assert flow.validate().errors == {"total": INSUFFICIENT_BALANCE}

    @pytest.mark.asyncio
    async def test_remove_last_recipient_refused(self, flow):
        with pytest.raises(ValueError):
            flow.remove_recipient(0)


class TestFeeFailure:
    """Test behaviour when transfer fees cannot be fetched."""

    @pytest.mark.asyncio
    async def test_blocked_by_default(self, mock_api, fee_resolver, wallet_balance):
        mock_api.get_transfer_fees = AsyncMock(side_effect=ServerError("down", status_code=503))
        flow = TransferFlow(mock_api, fee_resolver, balance=wallet_balance)
        await flow.open()
        flow.set_recipient("SOL002", "100")
        flow.password = "secret"

        assert "fees" in flow.validate().errors
        assert not flow.can_submit
        with pytest.raises(FormValidationError):
            await flow.prepare()

    @pytest.mark.asyncio
    async def test_refresh_unblocks(self, mock_api, fee_resolver, wallet_balance):
        mock_api.get_transfer_fees = AsyncMock(side_effect=[
            ServerError("down", status_code=503),
            {"success": True, "fee_percentage": 2, "fee_commission": 1},
        ])
        flow = TransferFlow(mock_api, fee_resolver, balance=wallet_balance)
        await flow.open()
        await flow.refresh_fees()
        flow.set_recipient("SOL002", "100")

        assert flow.validate().ok

    @pytest.mark.asyncio
    async def test_fail_open_allows_zero_fee(self, mock_api, wallet_balance):
        mock_api.get_transfer_fees = AsyncMock(side_effect=ServerError("down", status_code=503))
        flow = TransferFlow(mock_api, FeeResolver(mock_api, fail_open=True), balance=wallet_balance)
        await flow.open()
        flow.set_recipient("SOL002", "100")
        flow.password = "secret"

        assert flow.schedule.degraded
        assert flow.breakdown().total == Decimal("100.00")
        assert flow.can_submit


class TestSingleTransfer:
    """Test the single recipient confirmation and submission."""

    @pytest.mark.asyncio
    async def test_full_flow(self, mock_api, flow):
        flow.set_recipient("SOL002", "100")
        flow.note = "Rent"

        confirmation = await flow.prepare()
        assert flow.state == FlowState.CONFIRMING
        assert confirmation.recipient.name == "Jeanne Mbuyi"
        assert confirmation.rows() == [
            ("Recipient", "Jeanne Mbuyi (ID: SOL002)"),
            ("Note", "Rent"),
            ("Amount", "100.00 $"),
            ("Fee (2.0%)", "2.00 $"),
            ("Commission (1.0%)", "1.00 $"),
            ("Total", "103.00 $"),
        ]

        result = await flow.submit("secret")

        assert result["message"] == "Transfer completed"
        assert flow.state == FlowState.SUCCESS
        assert flow.password == ""
        mock_api.get_recipient_info.assert_awaited_once_with("SOL002")
        mock_api.get_wallet_balance.assert_awaited_once()

        call = mock_api.funds_transfer.await_args
        assert call.args[0] == {
            "is_multiple": False,
            "amount": "100.00",
            "frais_de_transaction": "2.00",
            "frais_de_commission": "1.00",
            "recipient_account_id": "SOL002",
            "note": "Rent",
            "password": "secret",
            "currency": "USD",
        }
        assert call.kwargs["idempotency_key"] == confirmation.idempotency_key

    @pytest.mark.asyncio
    async def test_recipient_not_found(self, mock_api, flow):
        mock_api.get_recipient_info = AsyncMock(
            side_effect=NotFoundError("Recipient not found", status_code=404)
        )
        flow.set_recipient("SOL999", "10")

        with pytest.raises(RecipientLookupError) as exc_info:
            await flow.prepare()

        assert exc_info.value.missing == ["SOL999"]
        assert flow.state == FlowState.IDLE

    @pytest.mark.asyncio
    async def test_submit_requires_confirmation(self, flow):
        flow.set_recipient("SOL002", "100")
        with pytest.raises(InvalidTransitionError):
            await flow.submit("secret")

        assert flow.password == ""

    @pytest.mark.asyncio
    async def test_submit_without_password_stays_confirming(self, mock_api, flow):
        flow.set_recipient("SOL002", "100")
        await flow.prepare()

        with pytest.raises(FormValidationError) as exc_info:
            await flow.submit("")

        assert "password" in exc_info.value.errors
        assert flow.state == FlowState.CONFIRMING
        mock_api.funds_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_changes_after_confirmation_are_not_sent(self, mock_api, flow):
        flow.set_recipient("SOL002", "100")
        confirmation = await flow.prepare()

        flow.set_amount("300")
        flow.note = "Changed"
        await flow.submit("secret")

        payload = mock_api.funds_transfer.await_args.args[0]
        assert payload["amount"] == "100.00"
        assert payload["frais_de_transaction"] == "2.00"
        assert payload["note"] == ""
        assert payload["password"] == "secret"
        assert "password" not in confirmation.payload

    @pytest.mark.asyncio
    async def test_cancel(self, flow):
        flow.set_recipient("SOL002", "100")
        await flow.prepare()
        flow.cancel()

        assert flow.state == FlowState.IDLE
        with pytest.raises(FlowError):
            flow.confirmation()

    @pytest.mark.asyncio
    async def test_reset_after_success(self, flow):
        flow.set_recipient("SOL002", "100")
        await flow.prepare()
        await flow.submit("secret")
        flow.reset()

        assert flow.state == FlowState.IDLE
        assert flow.result is None
        assert flow.entries[0].account_id == ""


class TestSubmissionSafety:
    """Test double submit, retry and stale balance handling."""

    @pytest.mark.asyncio
    async def test_second_submit_while_submitting_is_rejected(self, mock_api, flow):
        gate = asyncio.Event()

        async def slow_transfer(payload, idempotency_key=None):
            await gate.wait()
            return {"success": True}

        mock_api.funds_transfer = AsyncMock(side_effect=slow_transfer)
        flow.set_recipient("SOL002", "100")
        await flow.prepare()

        first = asyncio.create_task(flow.submit("secret"))
        await asyncio.sleep(0)
        assert flow.state == FlowState.SUBMITTING
        assert not flow.can_submit

        with pytest.raises(InvalidTransitionError):
            await flow.submit("secret")

        gate.set()
        await first
        assert mock_api.funds_transfer.await_count == 1
        assert flow.state == FlowState.SUCCESS

    @pytest.mark.asyncio
    async def test_retry_reuses_idempotency_key(self, mock_api, flow):
        mock_api.funds_transfer = AsyncMock(side_effect=[
            ServerError("Server error: 500", status_code=500),
            {"success": True, "message": "Transfer completed"},
        ])
        flow.set_recipient("SOL002", "100")
        await flow.prepare()

        with pytest.raises(ServerError):
            await flow.submit("secret")
        assert flow.state == FlowState.ERROR
        assert isinstance(flow.last_error, ServerError)

        await flow.submit("secret")

        assert flow.state == FlowState.SUCCESS
        first_key = mock_api.funds_transfer.await_args_list[0].kwargs["idempotency_key"]
        second_key = mock_api.funds_transfer.await_args_list[1].kwargs["idempotency_key"]
        assert first_key == second_key

    @pytest.mark.asyncio
    async def test_stale_balance_detected(self, mock_api, flow):
        flow.set_recipient("SOL002", "400")
        await flow.prepare()
        mock_api.get_wallet_balance = AsyncMock(return_value=WalletBalance(balance_usd="100"))

        with pytest.raises(InsufficientBalanceError):
            await flow.submit("secret")

        assert flow.state == FlowState.ERROR
        mock_api.funds_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_revalidation_can_be_disabled(self, mock_api, fee_resolver, wallet_balance):
        flow = TransferFlow(mock_api, fee_resolver, balance=wallet_balance, revalidate_on_submit=False)
        await flow.open()
        flow.set_recipient("SOL002", "100")
        await flow.prepare()
        await flow.submit("secret")

        mock_api.get_wallet_balance.assert_not_awaited()


class TestMultipleTransfer:
    """Test transfers to several recipients."""

    @pytest.mark.asyncio
    async def test_payload(self, mock_api, flow):
        mock_api.get_recipients_info = AsyncMock(return_value={
            "SOL002": Recipient(account_id="SOL002", name="Jeanne"),
            "SOL003": Recipient(account_id="SOL003", name="Patrick"),
        })
        flow.add_recipient("SOL002", "100")
        flow.add_recipient("SOL003", "50.50")
        assert flow.is_multiple

        confirmation = await flow.prepare()
        assert [line.recipient.name for line in confirmation.lines] == ["Jeanne", "Patrick"]
        assert confirmation.breakdown.total == Decimal("155.02")

        await flow.submit("secret")

        mock_api.get_recipients_info.assert_awaited_once_with(["SOL002", "SOL003"])
        payload = mock_api.funds_transfer.await_args.args[0]
        assert payload == {
            "is_multiple": True,
            "recipients": [
                {
                    "recipient_account_id": "SOL002",
                    "amount": "100.00",
                    "frais_de_transaction": "2.00",
                    "frais_de_commission": "1.00",
                },
                {
                    "recipient_account_id": "SOL003",
                    "amount": "50.50",
                    "frais_de_transaction": "1.01",
                    "frais_de_commission": "0.51",
                },
            ],
            "total_amount": "150.50",
            "total_fees": "4.52",
            "note": "",
            "password": "secret",
            "currency": "USD",
        }

    @pytest.mark.asyncio
    async def test_missing_recipient(self, mock_api, flow):
        mock_api.get_recipients_info = AsyncMock(return_value={
            "SOL002": Recipient(account_id="SOL002", name="Jeanne"),
            "SOL003": None,
        })
        flow.add_recipient("SOL002", "10")
        flow.add_recipient("SOL003", "10")

        with pytest.raises(RecipientLookupError) as exc_info:
            await flow.prepare()

        assert exc_info.value.missing == ["SOL003"]
        assert flow.state == FlowState.IDLE
