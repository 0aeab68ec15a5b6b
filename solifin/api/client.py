"""
API Client - Main client for SOLIFIN dashboard API communication
Handles bearer authentication, requests, retries and error translation
"""

import aiohttp
import asyncio
import logging
from typing import Optional, Dict, Any, List

from solifin.api.errors import (
    APIError, AuthenticationError, ForbiddenError, NotFoundError,
    RateLimitError, ValidationError, ServerError, BusinessError
)
from solifin.models import (
    WalletBalance, Recipient, PackStats, CarouselFeed
)

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
MASKED_KEYS = frozenset({"password", "cvv", "cardNumber"})


def mask_payload(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Copy of ``data`` safe to log"""
    if not isinstance(data, dict):
        return data
    masked = {}
    for key, value in data.items():
        if key in MASKED_KEYS:
            masked[key] = "***"
        elif isinstance(value, dict):
            masked[key] = mask_payload(value)
        else:
            masked[key] = value
    return masked


class APIClient:
    """
    API Client for dashboard backend communication

    Handles:
    - Bearer token authentication
    - HTTP requests with retry logic for safe or idempotent calls
    - Error translation to user-friendly messages
    - Response parsing to Pydantic models
    """

    def __init__(
        self,
        base_url: str,
        api_token: str,
        timeout_seconds: float = 30,
        max_retries: int = 3
    ):
        """
        Initialize API client

        Args:
            base_url: Base URL of API (e.g., http://localhost:8000)
            api_token: Personal access token of the logged-in user
            timeout_seconds: Total timeout per request
            max_retries: Attempts for GET and idempotent requests
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_config(cls, config) -> "APIClient":
        """Build a client from a :class:`solifin.config.Config`"""
        return cls(
            config.API_BASE_URL,
            config.API_TOKEN,
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries
        )

    async def __aenter__(self):
        """Async context manager entry"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

    async def connect(self):
        """Initialize HTTP session"""
        if self.session is None:
            self.session = aiohttp.ClientSession()
            logger.info("API client connected")

    async def close(self):
        """Close HTTP session"""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("API client closed")

    # =======================
    # HTTP Methods
    # =======================

    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        max_retries: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Make HTTP request with retry logic

        Only GET-like requests and requests carrying an idempotency key are
        retried, so a payment is never sent twice by the client itself.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (e.g., /api/getTransferFees)
            data: JSON body data
            params: Query parameters
            idempotency_key: Sent as ``Idempotency-Key`` when given
            max_retries: Maximum attempts (defaults to client setting)

        Returns:
            Response JSON data

        Raises:
            APIError: If request fails after retries
        """
        if self.session is None:
            await self.connect()

        method = method.upper()
        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        retryable = method in SAFE_METHODS or idempotency_key is not None
        attempts = (max_retries or self.max_retries) if retryable else 1

        logger.debug(f"{method} {endpoint} params={params} body={mask_payload(data)}")

        for attempt in range(attempts):
            try:
                async with self.session.request(
                    method,
                    url,
                    json=data,
                    params=params,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
                ) as resp:
                    try:
                        response_data = await resp.json(content_type=None)
                    except ValueError:
                        response_data = {}
                    if not isinstance(response_data, dict):
                        response_data = {"data": response_data}

                    # Success
                    if 200 <= resp.status < 300:
                        return response_data

                    # Rate limit
                    if resp.status == 429:
                        retry_after = int(resp.headers.get("Retry-After", "60"))
                        raise RateLimitError(
                            "Rate limit exceeded",
                            retry_after=retry_after,
                            response_data=response_data
                        )

                    # Client errors (don't retry)
                    if 400 <= resp.status < 500:
                        error_class = self._get_error_class(resp.status)
                        error_message = (
                            response_data.get("message")
                            or response_data.get("detail")
                            or f"Request failed: {resp.status}"
                        )
                        raise error_class(
                            error_message,
                            status_code=resp.status,
                            response_data=response_data
                        )

                    # Server errors (retry with backoff)
                    if attempt < attempts - 1:
                        logger.warning(f"{method} {endpoint} returned {resp.status}, retrying")
                        await asyncio.sleep(2 ** attempt)
                        continue
                    raise ServerError(
                        f"Server error: {resp.status}",
                        status_code=resp.status,
                        response_data=response_data
                    )

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < attempts - 1:
                    logger.warning(f"Network error on {method} {endpoint}: {e}, retrying")
                    await asyncio.sleep(1)
                    continue
                raise APIError(f"Network error: {e}")

        raise APIError("Max retries exceeded")

    @staticmethod
    def _get_error_class(status_code: int):
        """Get appropriate error class for status code"""
        if status_code == 401:
            return AuthenticationError
        elif status_code == 403:
            return ForbiddenError
        elif status_code == 404:
            return NotFoundError
        elif status_code == 400 or status_code == 422:
            return ValidationError
        else:
            return APIError

    @staticmethod
    def _ensure_success(data: Dict[str, Any], fallback: str) -> Dict[str, Any]:
        """Raise BusinessError when a 2xx body reports failure"""
        if data.get("success") is False or data.get("status") in ("error", "failed"):
            raise BusinessError(
                data.get("message") or fallback,
                status_code=200,
                response_data=data
            )
        return data

    async def get(self, endpoint: str, params: Optional[Dict] = None) -> Dict:
        """GET request"""
        return await self._request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        data: Optional[Dict] = None,
        idempotency_key: Optional[str] = None
    ) -> Dict:
        """POST request"""
        return await self._request("POST", endpoint, data=data, idempotency_key=idempotency_key)

    async def put(self, endpoint: str, data: Optional[Dict] = None) -> Dict:
        """PUT request"""
        return await self._request("PUT", endpoint, data=data)

    async def patch(self, endpoint: str, data: Optional[Dict] = None) -> Dict:
        """PATCH request"""
        return await self._request("PATCH", endpoint, data=data)

    async def delete(self, endpoint: str) -> Dict:
        """DELETE request"""
        return await self._request("DELETE", endpoint)

    # =======================
    # Health Check
    # =======================

    async def health_check(self) -> bool:
        """
        Check API health

        Returns:
            True if API is reachable and the token is accepted
        """
        try:
            await self.get_wallet_balance()
            return True
        except APIError as e:
            logger.warning(f"Health check failed: {e}")
            return False

    # =======================
    # Dashboard
    # =======================

    async def get_dashboard_carousel(self) -> CarouselFeed:
        """Get adverts, job offers and business opportunities"""
        data = await self.get("/api/dashboard/carousel")
        self._ensure_success(data, "Unable to load dashboard carousel")
        return CarouselFeed(**data)

    # =======================
    # Fee Schedules
    # =======================

    async def get_transfer_fees(self) -> Dict[str, Any]:
        """Get wallet-to-wallet transfer fee and commission percentages"""
        data = await self.get("/api/getTransferFees")
        return self._ensure_success(data, "Unable to fetch transfer fees")

    async def get_withdrawal_fee(self, amount: float) -> Dict[str, Any]:
        """Get withdrawal fee for a reference amount"""
        data = await self.post("/api/transaction-fees/withdrawal", {"amount": amount})
        return self._ensure_success(data, "Unable to fetch withdrawal fees")

    async def get_referral_commission(self) -> Dict[str, Any]:
        """Get sponsor commission percentage charged on withdrawals"""
        data = await self.get("/api/withdrawal/referral-commission")
        return self._ensure_success(data, "Unable to fetch referral commission")

    async def get_purchase_fee(self, amount: float) -> Dict[str, Any]:
        """Get pack purchase fee for a reference amount"""
        data = await self.post("/api/transaction-fees/purchase", {"amount": amount})
        return self._ensure_success(data, "Unable to fetch purchase fees")

    async def get_virtual_purchase_fee(self) -> Dict[str, Any]:
        """Get virtual-currency purchase fee percentage"""
        data = await self.get("/api/userwallet/purchase-fee")
        return self._ensure_success(data, "Unable to fetch purchase fees")

    # =======================
    # Wallet Operations
    # =======================

    async def get_wallet_balance(self) -> WalletBalance:
        """Get current wallet balance in USD and CDF"""
        data = await self.get("/api/userwallet/balance")
        self._ensure_success(data, "Unable to fetch wallet balance")
        if "balance_usd" not in data and "balance" in data:
            data = {**data, "balance_usd": data["balance"]}
        return WalletBalance(**data)

    async def get_recipient_info(self, account_id: str) -> Recipient:
        """
        Look up a transfer recipient

        Args:
            account_id: SOLIFIN account identifier of the recipient

        Returns:
            Recipient details
        """
        data = await self.get(f"/api/recipient-info/{account_id}")
        self._ensure_success(data, "Recipient not found")
        recipient = data.get("recipient") or data.get("user")
        if not recipient:
            raise NotFoundError("Recipient not found", status_code=404, response_data=data)
        return Recipient(**{"account_id": account_id, **recipient})

    async def get_recipients_info(self, account_ids: List[str]) -> Dict[str, Optional[Recipient]]:
        """
        Look up several recipients in one call

        Returns:
            Mapping of account id -> recipient (None when not found)
        """
        data = await self.post("/api/recipients-info", {"account_ids": list(account_ids)})
        self._ensure_success(data, "Unable to fetch recipients")

        found = data.get("recipients") or {}
        result: Dict[str, Optional[Recipient]] = {}
        for account_id in account_ids:
            entry = found.get(account_id) or {}
            user = entry.get("user") if entry.get("success") else None
            result[account_id] = Recipient(**{"account_id": account_id, **user}) if user else None
        return result

    async def funds_transfer(
        self,
        payload: Dict[str, Any],
        idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        """Transfer funds to one or several SOLIFIN accounts"""
        data = await self.post("/api/funds-transfer", payload, idempotency_key=idempotency_key)
        return self._ensure_success(data, "Transfer failed")

    # =======================
    # Withdrawal Operations
    # =======================

    async def request_withdrawal(
        self,
        wallet_id: int,
        payload: Dict[str, Any],
        idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        """Submit a withdrawal request for a wallet"""
        data = await self.post(
            f"/api/withdrawal/request/{wallet_id}",
            payload,
            idempotency_key=idempotency_key
        )
        return self._ensure_success(data, "Withdrawal request failed")

    async def cancel_withdrawal(self, request_id: int) -> Dict[str, Any]:
        """Cancel one of the user's pending withdrawal requests"""
        data = await self.post(f"/api/withdrawal/request/{request_id}/cancel")
        return self._ensure_success(data, "Unable to cancel withdrawal request")

    async def list_withdrawals(
        self,
        pending_only: bool = True,
        page: int = 1,
        per_page: int = 10,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """List withdrawal requests (admin)"""
        endpoint = "/api/admin/withdrawal/requests" if pending_only else "/api/admin/withdrawal/all"
        params: Dict[str, Any] = {"page": page, "per_page": per_page}
        for key, value in (filters or {}).items():
            if value not in (None, ""):
                params[key] = value
        data = await self.get(endpoint, params=params)
        return self._ensure_success(data, "Unable to list withdrawal requests")

    async def approve_withdrawal(self, request_id: int, admin_note: Optional[str] = None) -> Dict[str, Any]:
        """Approve a withdrawal request and trigger payout (admin)"""
        payload = {"admin_note": admin_note} if admin_note else {}
        data = await self.post(f"/api/admin/withdrawal/requests/{request_id}/approve", payload)
        return self._ensure_success(data, "Unable to approve withdrawal request")

    async def reject_withdrawal(self, request_id: int, admin_note: Optional[str] = None) -> Dict[str, Any]:
        """Reject a withdrawal request (admin)"""
        payload = {"admin_note": admin_note} if admin_note else {}
        data = await self.post(f"/api/admin/withdrawal/requests/{request_id}/reject", payload)
        return self._ensure_success(data, "Unable to reject withdrawal request")

    async def delete_withdrawal(self, request_id: int) -> Dict[str, Any]:
        """Delete a withdrawal request (admin)"""
        data = await self.delete(f"/api/admin/withdrawal/requests/{request_id}")
        return self._ensure_success(data, "Unable to delete withdrawal request")

    # =======================
    # SerdiPay Payments
    # =======================

    async def serdipay_payment(
        self,
        payload: Dict[str, Any],
        idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Dispatch a payment (pack purchase, renewal, virtual purchase)

        Wallet payments complete immediately; mobile money and card
        payments are only initiated and confirmed later by callback.
        """
        data = await self.post("/api/serdipay/payment", payload, idempotency_key=idempotency_key)
        return self._ensure_success(data, "Payment failed")

    # =======================
    # Pack Statistics
    # =======================

    async def get_pack_detailed_stats(self, pack_id: int) -> PackStats:
        """Get generation-based referral statistics for a pack"""
        data = await self.get(f"/api/packs/{pack_id}/detailed-stats")
        self._ensure_success(data, "Unable to fetch pack statistics")
        return PackStats(**(data.get("data") or {}))

    async def get_pack_referrals(
        self,
        pack_id: int,
        page: int = 1,
        per_page: int = 25,
        search: str = "",
        status: str = "all",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        generation_tab: int = 0
    ) -> Dict[str, Any]:
        """Get referrals of a pack, one generation tab at a time"""
        params: Dict[str, Any] = {
            "page": page,
            "per_page": per_page,
            "status": status,
            "generation_tab": generation_tab,
        }
        if search:
            params["search"] = search
        if start_date:
            params["start_date"] = start_date
        if end_date:
            params["end_date"] = end_date

        data = await self.get(f"/api/packs/{pack_id}/referrals", params=params)
        self._ensure_success(data, "Unable to fetch pack referrals")
        return data.get("data") or {}
