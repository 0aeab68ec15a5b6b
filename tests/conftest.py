"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment so that solifin.config validates without a .env file
os.environ.setdefault("SOLIFIN_API_BASE_URL", "http://localhost:8000")
os.environ.setdefault("SOLIFIN_API_TOKEN", "test-token")
os.environ.setdefault("SOLIFIN_CONFIG", str(Path(__file__).parent / "missing-solifin.json"))
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add the project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from solifin.models import PackOffer, Recipient, WalletBalance
from solifin.services.fee_resolver import FeeResolver


@pytest.fixture
def wallet_balance():
    """Balance of 500 USD and 100 000 CDF."""
    return WalletBalance(balance_usd=Decimal("500.00"), balance_cdf=Decimal("100000.00"))


@pytest.fixture
def mock_api(wallet_balance):
    """Mock APIClient answering every endpoint the flows use."""
    api = AsyncMock()
    api.get_transfer_fees = AsyncMock(
        return_value={"success": True, "fee_percentage": 2, "fee_commission": 1}
    )
    api.get_withdrawal_fee = AsyncMock(
        return_value={"success": True, "percentage": 2.5}
    )
    api.get_referral_commission = AsyncMock(
        return_value={"success": True, "percentage": 1}
    )
    api.get_purchase_fee = AsyncMock(
        return_value={"success": True, "percentage": 3, "fee": 3}
    )
    api.get_virtual_purchase_fee = AsyncMock(
        return_value={"success": True, "fee_percentage": 1.5}
    )
    api.get_wallet_balance = AsyncMock(return_value=wallet_balance)
    api.get_recipient_info = AsyncMock(
        return_value=Recipient(id=7, account_id="SOL002", name="Jeanne Mbuyi")
    )
    api.get_recipients_info = AsyncMock(return_value={})
    api.funds_transfer = AsyncMock(
        return_value={"success": True, "message": "Transfer completed"}
    )
    api.request_withdrawal = AsyncMock(
        return_value={"success": True, "message": "Withdrawal request submitted"}
    )
    api.serdipay_payment = AsyncMock(
        return_value={"success": True, "message": "Payment initiated"}
    )
    return api


@pytest.fixture
def fee_resolver(mock_api):
    """Fail-closed resolver on the mock API."""
    return FeeResolver(mock_api)


@pytest.fixture
def monthly_pack():
    """Monthly pack at 20 USD or 56 000 CDF."""
    return PackOffer(
        id=3, name="Pack Gold", price=Decimal("20"), cdf_price=Decimal("56000"), abonnement="mensuel"
    )
