"""
Unit tests for the command line commands.
"""

import pytest
from unittest.mock import AsyncMock

from solifin import main as cli
from solifin.api.errors import ServerError
from solifin.config import config
from solifin.utils.payment_methods import validate_phone_number


def parse(*argv):
    return cli.create_parser().parse_args(list(argv))


class TestFeesCommand:
    """Test the fee preview command."""

    @pytest.mark.asyncio
    async def test_transfer_fees_with_amount(self, mock_api, capsys):
        code = await cli.cmd_fees(mock_api, parse("fees", "transfer", "--amount", "100"))

        out = capsys.readouterr().out
        assert code == 0
        assert "2.00%" in out
        assert "103.00 $" in out

    @pytest.mark.asyncio
    async def test_fees_blocked_when_unavailable(self, mock_api, capsys):
        mock_api.get_transfer_fees.side_effect = ServerError("Server error: 500", status_code=500)

        code = await cli.cmd_fees(mock_api, parse("fees", "transfer"))

        assert code == 1
        assert "Unable to fetch transaction fees" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_fees_degraded_when_fail_open(self, mock_api, capsys, monkeypatch):
        monkeypatch.setattr(config, "_config", {"fees": {"fail_open": True}})
        mock_api.get_virtual_purchase_fee.side_effect = ServerError("Server error: 502", status_code=502)

        code = await cli.cmd_fees(mock_api, parse("fees", "virtual"))

        assert code == 0
        assert "fee schedule unavailable" in capsys.readouterr().out


class TestBalanceCommand:
    """Test the balance command."""

    @pytest.mark.asyncio
    async def test_prints_both_currencies(self, mock_api, capsys):
        code = await cli.cmd_balance(mock_api, parse("balance"))

        out = capsys.readouterr().out
        assert code == 0
        assert "500.00 $" in out
        assert "100,000.00 FC" in out


class TestTransferCommand:
    """Test the transfer command."""

    @pytest.mark.asyncio
    async def test_transfer_with_yes(self, mock_api, capsys, monkeypatch):
        monkeypatch.setenv("SOLIFIN_PASSWORD", "secret")
        args = parse("transfer", "--to", "SOL002", "--amount", "50", "--sender", "SOL001", "--yes")

        code = await cli.cmd_transfer(mock_api, args)

        out = capsys.readouterr().out
        assert code == 0
        assert "Jeanne Mbuyi" in out
        assert "Transfer completed" in out
        payload = mock_api.funds_transfer.await_args.args[0]
        assert payload["password"] == "secret"

    @pytest.mark.asyncio
    async def test_declined_confirmation(self, mock_api, capsys, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "n")
        args = parse("transfer", "--to", "SOL002", "--amount", "50", "--sender", "SOL001")

        code = await cli.cmd_transfer(mock_api, args)

        assert code == 1
        assert "Cancelled" in capsys.readouterr().out
        mock_api.funds_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mismatched_amounts(self, mock_api, capsys):
        args = parse("transfer", "--to", "SOL002", "--to", "SOL003", "--amount", "50")

        code = await cli.cmd_transfer(mock_api, args)

        assert code == 2
        mock_api.get_transfer_fees.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_self_transfer_rejected(self, mock_api, capsys):
        args = parse("transfer", "--to", "SOL001", "--amount", "50", "--sender", "SOL001", "--yes")

        code = await cli.cmd_transfer(mock_api, args)

        assert code == 1
        assert "You cannot transfer funds to yourself" in capsys.readouterr().err


class TestWithdrawalsCommand:
    """Test the withdrawal review command."""

    @pytest.mark.asyncio
    async def test_pending_listing(self, capsys):
        api = AsyncMock()
        api.list_withdrawals = AsyncMock(return_value={
            "success": True,
            "data": {
                "current_page": 1,
                "last_page": 1,
                "total": 1,
                "data": [{
                    "id": 42,
                    "amount": "30",
                    "status": "pending",
                    "payment_method": "orange-money",
                    "user": {"name": "Jeanne Mbuyi"},
                }],
            },
        })

        code = await cli.cmd_withdrawals(api, parse("withdrawals", "pending", "--method", "orange-money"))

        out = capsys.readouterr().out
        assert code == 0
        assert "#42" in out
        assert "Jeanne Mbuyi" in out
        assert api.list_withdrawals.await_args.kwargs["filters"] == {"payment_method": "orange-money"}

    @pytest.mark.asyncio
    async def test_reject_with_note(self, capsys):
        api = AsyncMock()
        api.reject_withdrawal = AsyncMock(return_value={"success": True, "message": "Request rejected"})

        code = await cli.cmd_withdrawals(api, parse("withdrawals", "reject", "42", "--note", "Wrong number"))

        assert code == 0
        assert "Request rejected" in capsys.readouterr().out
        api.reject_withdrawal.assert_awaited_once_with(42, admin_note="Wrong number")


class TestMain:
    """Test the entry point."""

    def test_help_example_phone_is_valid(self):
        epilog = cli.create_parser().epilog

        assert "--phone 812345678" in epilog
        assert validate_phone_number("812345678", "CD")

    def test_no_command(self, capsys):
        assert cli.main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_missing_token(self, capsys, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SOLIFIN_API_TOKEN")

        assert cli.main(["balance"]) == 1
        assert "SOLIFIN_API_TOKEN" in capsys.readouterr().err
