"""
Withdrawal Review - Listing and admin actions on withdrawal requests
"""

import logging
from typing import Any, Dict, Optional

from solifin.flows.errors import FormValidationError
from solifin.models import Page, WithdrawalRecord
from solifin.models.enums import PaymentStatus, WithdrawalStatus

logger = logging.getLogger(__name__)

ADMIN_NOTE_MAX_LENGTH = 500
FILTER_KEYS = ("payment_method", "initiated_by", "start_date", "end_date", "search", "status", "currency")


def parse_page(data: Any, per_page: int = 10) -> Page[WithdrawalRecord]:
    """
    Parse a Laravel paginator (or a bare list) of withdrawal requests

    Accepts ``{data: {data: [...], current_page, ...}}``,
    ``{withdrawal_requests: {...}}``, the paginator itself or a list.
    """
    if isinstance(data, dict):
        for key in ("data", "withdrawal_requests"):
            if key in data and isinstance(data[key], (dict, list)):
                data = data[key]
                break

    if isinstance(data, list):
        items = [WithdrawalRecord(**item) for item in data]
        return Page[WithdrawalRecord](
            items=items, per_page=max(per_page, len(items)), total=len(items)
        )

    data = data or {}
    items = [WithdrawalRecord(**item) for item in data.get("data") or []]
    return Page[WithdrawalRecord](
        items=items,
        current_page=int(data.get("current_page") or 1),
        last_page=int(data.get("last_page") or 1),
        per_page=int(data.get("per_page") or per_page),
        total=int(data.get("total") if data.get("total") is not None else len(items)),
    )


def _check_note(admin_note: Optional[str]) -> Optional[str]:
    if admin_note is None:
        return None
    admin_note = admin_note.strip()
    if len(admin_note) > ADMIN_NOTE_MAX_LENGTH:
        raise FormValidationError({
            "admin_note": f"Admin note cannot exceed {ADMIN_NOTE_MAX_LENGTH} characters"
        })
    return admin_note or None


class WithdrawalReviewService:
    """Withdrawal requests as seen from the admin screen"""

    def __init__(self, api, per_page: int = 10):
        self.api = api
        self.per_page = per_page

    async def list_pending(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None
    ) -> Page[WithdrawalRecord]:
        """Pending withdrawal requests"""
        return await self._list(True, page, per_page, filters)

    async def list_all(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None
    ) -> Page[WithdrawalRecord]:
        """Withdrawal requests of every status"""
        return await self._list(False, page, per_page, filters)

    async def _list(self, pending_only, page, per_page, filters) -> Page[WithdrawalRecord]:
        per_page = per_page or self.per_page
        unknown = set(filters or {}) - set(FILTER_KEYS)
        if unknown:
            raise ValueError(f"Unknown withdrawal filters: {', '.join(sorted(unknown))}")

        data = await self.api.list_withdrawals(
            pending_only=pending_only, page=page, per_page=per_page, filters=filters
        )
        result = parse_page(data, per_page=per_page)
        logger.debug(f"Loaded {len(result.items)} of {result.total} withdrawal requests")
        return result

    async def approve(self, request_id: int, admin_note: Optional[str] = None) -> Dict[str, Any]:
        """Approve a request; the server then triggers the payout"""
        note = _check_note(admin_note)
        logger.info(f"Approving withdrawal request {request_id}")
        return await self.api.approve_withdrawal(request_id, admin_note=note)

    async def reject(self, request_id: int, admin_note: Optional[str] = None) -> Dict[str, Any]:
        """Reject a request; the held amount goes back to the user's wallet"""
        note = _check_note(admin_note)
        logger.info(f"Rejecting withdrawal request {request_id}")
        return await self.api.reject_withdrawal(request_id, admin_note=note)

    async def retry_payment(self, record: WithdrawalRecord, admin_note: Optional[str] = None) -> Dict[str, Any]:
        """
        Re-approve a request whose payout failed

        Raises:
            ValueError: The payout did not fail
        """
        failed = (
            record.status == WithdrawalStatus.FAILED
            or record.payment_status == PaymentStatus.FAILED
        )
        if not failed:
            raise ValueError(f"Withdrawal request {record.id} has no failed payment to retry")
        return await self.approve(record.id, admin_note=admin_note or "Payment retry")

    async def cancel(self, request_id: int) -> Dict[str, Any]:
        """Cancel a pending request of the current user"""
        logger.info(f"Cancelling withdrawal request {request_id}")
        return await self.api.cancel_withdrawal(request_id)

    async def delete(self, request_id: int) -> Dict[str, Any]:
        logger.info(f"Deleting withdrawal request {request_id}")
        return await self.api.delete_withdrawal(request_id)
