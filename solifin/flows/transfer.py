"""
Transfer Flow - Funds transfer between SOLIFIN accounts (one or many recipients)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from solifin.api.errors import NotFoundError, BusinessError
from solifin.flows.base import PaymentFlow
from solifin.flows.errors import RecipientLookupError
from solifin.models import FeeBreakdown, Recipient, TransferLine
from solifin.models.enums import FeeKind
from solifin.services.balance_validator import ValidationResult, check_amount, check_required
from solifin.services.fee_calculator import calculate_with_schedule, parse_amount, summarize

logger = logging.getLogger(__name__)


@dataclass
class RecipientEntry:
    """One recipient row as typed in the form"""
    account_id: str = ""
    amount_input: Any = ""
    recipient: Optional[Recipient] = None

    @property
    def amount(self) -> Optional[Decimal]:
        try:
            return parse_amount(self.amount_input)
        except ValueError:
            return None


class TransferFlow(PaymentFlow):
    """
    Wallet-to-wallet transfer

    A single recipient is looked up with ``GET /api/recipient-info/{id}``;
    several recipients with one ``POST /api/recipients-info`` call. Each
    recipient line carries its own fee and commission.
    """

    kind = FeeKind.TRANSFER
    requires_lookup = True

    def __init__(self, api, fee_resolver, sender_account_id: Optional[str] = None, **kwargs):
        super().__init__(api, fee_resolver, **kwargs)
        self.sender_account_id = sender_account_id
        self.entries: List[RecipientEntry] = [RecipientEntry()]
        self.note = ""

    # =======================
    # Recipients
    # =======================

    @property
    def is_multiple(self) -> bool:
        return len(self.entries) > 1

    def set_recipient(self, account_id: str, amount: Any = None):
        """Single-recipient form: replace all lines with one"""
        entry = RecipientEntry(account_id=(account_id or "").strip())
        if amount is not None:
            entry.amount_input = amount
        self.entries = [entry]

    def set_amount(self, value: Any):
        """Amount of the single recipient"""
        self.entries[0].amount_input = value

    def add_recipient(self, account_id: str = "", amount: Any = "") -> int:
        """Append a recipient line, returns its index"""
        if len(self.entries) == 1 and not self.entries[0].account_id and self.entries[0].amount_input in ("", None):
            self.entries = []
        self.entries.append(RecipientEntry(account_id=(account_id or "").strip(), amount_input=amount))
        return len(self.entries) - 1

    def update_recipient(self, index: int, account_id: Optional[str] = None, amount: Any = None):
        entry = self.entries[index]
        if account_id is not None and account_id.strip() != entry.account_id:
            entry.account_id = account_id.strip()
            entry.recipient = None
        if amount is not None:
            entry.amount_input = amount

    def remove_recipient(self, index: int):
        """Remove a line; the form always keeps one"""
        if len(self.entries) <= 1:
            raise ValueError("At least one recipient is required")
        del self.entries[index]

    # =======================
    # Amounts
    # =======================

    @property
    def amount(self) -> Optional[Decimal]:
        amounts = [entry.amount for entry in self.entries]
        if not amounts or any(a is None for a in amounts):
            return None
        return sum(amounts, Decimal("0"))

    def lines(self) -> List[TransferLine]:
        """Recipient lines with a valid amount, each with its own breakdown"""
        lines = []
        for entry in self.entries:
            amount = entry.amount
            if not entry.account_id or amount is None or amount <= 0:
                continue
            breakdown = (
                calculate_with_schedule(amount, self.schedule)
                if self.schedule is not None else FeeBreakdown.zero()
            )
            lines.append(TransferLine(
                recipient_account_id=entry.account_id,
                amount=breakdown.amount,
                breakdown=breakdown,
                recipient=entry.recipient
            ))
        return lines

    def breakdown(self) -> FeeBreakdown:
        if self.schedule is None:
            return FeeBreakdown.zero()
        return summarize(line.breakdown for line in self.lines())

    # =======================
    # Validation
    # =======================

    @property
    def balance_field(self) -> str:
        return "total" if self.is_multiple else "amount"

    def _field(self, name: str, index: int) -> str:
        return f"{name}_{index}" if self.is_multiple else name

    def _validate_form(self) -> ValidationResult:
        result = ValidationResult()
        for index, entry in enumerate(self.entries):
            account_field = self._field("recipient_account_id", index)
            if self.sender_account_id and entry.account_id == self.sender_account_id:
                result.add(account_field, "You cannot transfer funds to yourself")
            result.merge(check_required(
                account_field, entry.account_id, "Recipient account ID is required"
            ))
            result.merge(check_amount(entry.amount, self._field("amount", index)))
        return result

    # =======================
    # Lookup
    # =======================

    async def _lookup(self):
        if not self.is_multiple:
            entry = self.entries[0]
            try:
                entry.recipient = await self.api.get_recipient_info(entry.account_id)
            except (NotFoundError, BusinessError) as e:
                logger.info(f"Recipient {entry.account_id} not found: {e}")
                raise RecipientLookupError(
                    "Recipient not found. Please check the account ID.",
                    missing=[entry.account_id]
                ) from e
            return

        pending = [e.account_id for e in self.entries if e.recipient is None]
        if pending:
            found = await self.api.get_recipients_info(pending)
            for entry in self.entries:
                if entry.recipient is None:
                    entry.recipient = found.get(entry.account_id)

        missing = [e.account_id for e in self.entries if e.recipient is None]
        if missing:
            raise RecipientLookupError(
                f"Recipients not found: {', '.join(missing)}",
                missing=missing
            )

    def _confirmation_extra(self) -> Dict[str, Any]:
        lines = self.lines()
        extra: Dict[str, Any] = {"lines": lines if self.is_multiple else []}
        if not self.is_multiple:
            extra["recipient"] = self.entries[0].recipient
            extra["details"] = [("Recipient", _recipient_label(self.entries[0]))]
        if self.note:
            extra.setdefault("details", []).append(("Note", self.note))
        return extra

    def _clear_form(self):
        self.entries = [RecipientEntry()]
        self.note = ""

    # =======================
    # Submission
    # =======================

    def _build_payload(self) -> Dict[str, Any]:
        lines = self.lines()
        common = {
            "note": self.note or "",
            "currency": self.currency.value,
        }

        if self.is_multiple:
            total = summarize(line.breakdown for line in lines)
            return {
                "is_multiple": True,
                "recipients": [
                    {
                        "recipient_account_id": line.recipient_account_id,
                        "amount": str(line.breakdown.amount),
                        "frais_de_transaction": str(line.breakdown.fee),
                        "frais_de_commission": str(line.breakdown.commission),
                    }
                    for line in lines
                ],
                "total_amount": str(total.amount),
                "total_fees": str(total.total_fee),
                **common
            }

        line = lines[0]
        return {
            "is_multiple": False,
            "amount": str(line.breakdown.amount),
            "frais_de_transaction": str(line.breakdown.fee),
            "frais_de_commission": str(line.breakdown.commission),
            "recipient_account_id": line.recipient_account_id,
            **common
        }

    async def _send(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        return await self.api.funds_transfer(payload, idempotency_key=idempotency_key)


def _recipient_label(entry: RecipientEntry) -> str:
    if entry.recipient and entry.recipient.name:
        return f"{entry.recipient.name} (ID: {entry.account_id})"
    return f"ID: {entry.account_id}"
