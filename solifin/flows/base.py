"""
Payment Flow - Confirmation / submission state machine shared by all forms

Every flow follows the same lifecycle:

    open() -> set fields -> validate() -> prepare() -> confirmation()
           -> submit(password) -> SUCCESS | ERROR

Fees are resolved once per flow and recomputed synchronously whenever an
amount changes. prepare() freezes the request body on the confirmation, so
form edits made afterwards never reach the server. A flow never submits
twice for the same confirmation: the state moves to SUBMITTING before any
network call and the confirmation's idempotency key is reused when an
errored submission is retried.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from solifin.api.errors import APIError
from solifin.flows.errors import (
    InvalidTransitionError, InsufficientBalanceError, FlowError
)
from solifin.models import FeeBreakdown, FeeSchedule, Recipient, TransferLine, WalletBalance
from solifin.models.enums import Currency, FeeKind, FlowState
from solifin.services.balance_validator import (
    ValidationResult, check_balance, check_required, INSUFFICIENT_BALANCE
)
from solifin.services.fee_calculator import calculate_with_schedule, parse_amount
from solifin.services.fee_resolver import CachedFeeSchedule, FeeResolver
from solifin.utils.formatting import format_currency, format_percentage

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[FlowState, frozenset] = {
    FlowState.IDLE: frozenset({FlowState.AWAITING_RECIPIENT_LOOKUP, FlowState.CONFIRMING}),
    FlowState.AWAITING_RECIPIENT_LOOKUP: frozenset({FlowState.CONFIRMING, FlowState.IDLE}),
    FlowState.CONFIRMING: frozenset({FlowState.SUBMITTING, FlowState.IDLE}),
    FlowState.SUBMITTING: frozenset({FlowState.SUCCESS, FlowState.ERROR}),
    FlowState.ERROR: frozenset({FlowState.IDLE, FlowState.CONFIRMING}),
    FlowState.SUCCESS: frozenset({FlowState.IDLE}),
}


class Confirmation(BaseModel):
    """What the user is asked to confirm before submitting"""
    kind: FeeKind
    currency: Currency
    schedule: FeeSchedule
    breakdown: FeeBreakdown
    idempotency_key: str
    recipient: Optional[Recipient] = None
    lines: List[TransferLine] = Field(default_factory=list)
    details: List[Tuple[str, str]] = Field(default_factory=list)
    debits_wallet: bool = True
    payload: Dict[str, Any] = Field(default_factory=dict)

    def rows(self) -> List[Tuple[str, str]]:
        """Ordered label / value pairs: details, amount, fee, commission, total"""
        rows = list(self.details)
        for line in self.lines:
            name = line.recipient.name if line.recipient and line.recipient.name else line.recipient_account_id
            rows.append((f"To {name}", format_currency(line.amount, self.currency)))

        rows.append(("Amount", format_currency(self.breakdown.amount, self.currency)))
        rows.append((
            f"Fee ({format_percentage(self.schedule.fee_percentage)})",
            format_currency(self.breakdown.fee, self.currency)
        ))
        if self.schedule.commission_percentage > 0 or self.breakdown.commission > 0:
            rows.append((
                f"Commission ({format_percentage(self.schedule.commission_percentage)})",
                format_currency(self.breakdown.commission, self.currency)
            ))
        rows.append(("Total", format_currency(self.breakdown.total, self.currency)))
        return rows


class PaymentFlow:
    """
    Base class for the transfer, withdrawal and purchase flows

    Subclasses set ``kind`` and implement ``_validate_form``,
    ``_build_payload`` and ``_send``. Flows with a recipient set
    ``requires_lookup`` and implement ``_lookup``.
    """

    kind: FeeKind = FeeKind.TRANSFER
    requires_lookup: bool = False
    password_required: bool = True

    def __init__(
        self,
        api,
        fee_resolver: FeeResolver,
        balance: Optional[WalletBalance] = None,
        currency: Currency = Currency.USD,
        revalidate_on_submit: bool = True
    ):
        """
        Args:
            api: APIClient (or any object with the same coroutine methods)
            fee_resolver: Resolver used for this flow's fee kind
            balance: Cached wallet balance; fetched on open() when omitted
            currency: Currency selected in the form
            revalidate_on_submit: Re-fetch the balance right before submitting
        """
        self.api = api
        self.fees = CachedFeeSchedule(fee_resolver, self.kind)
        self.balance = balance
        self.currency = Currency(currency)
        self.revalidate_on_submit = revalidate_on_submit

        self.state = FlowState.IDLE
        self.password = ""
        self.amount_input: Any = ""
        self.result: Optional[Dict[str, Any]] = None
        self.last_error: Optional[Exception] = None
        self._confirmation: Optional[Confirmation] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self.state.value} currency={self.currency.value}>"

    # =======================
    # State
    # =======================

    def _transition(self, target: FlowState):
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        logger.debug(f"{type(self).__name__}: {self.state.value} -> {target.value}")
        self.state = target

    @property
    def is_busy(self) -> bool:
        return self.state in (FlowState.AWAITING_RECIPIENT_LOOKUP, FlowState.SUBMITTING)

    # =======================
    # Fees and balance
    # =======================

    async def open(self):
        """Resolve the fee schedule and, when needed, the wallet balance"""
        await self.fees.refresh()
        if self.balance is None and self.checks_balance:
            await self.refresh_balance()

    async def refresh_fees(self) -> Optional[FeeSchedule]:
        """Re-fetch the fee schedule ("recalculate fees")"""
        return await self.fees.refresh()

    async def refresh_balance(self) -> WalletBalance:
        self.balance = await self.api.get_wallet_balance()
        return self.balance

    @property
    def schedule(self) -> Optional[FeeSchedule]:
        return self.fees.schedule

    @property
    def checks_balance(self) -> bool:
        """Whether the total is debited from the SOLIFIN wallet"""
        return True

    @property
    def debit_currency(self) -> Currency:
        return self.currency

    # =======================
    # Amounts
    # =======================

    def set_amount(self, value: Any):
        self.amount_input = value

    def set_currency(self, currency: Currency):
        self.currency = Currency(currency)

    @property
    def amount(self) -> Optional[Decimal]:
        """Parsed amount, None while the input is blank or not a number"""
        try:
            return parse_amount(self.amount_input)
        except ValueError:
            return None

    def breakdown(self) -> FeeBreakdown:
        """Current breakdown; zero until fees are loaded and the amount is valid"""
        if self.schedule is None or self.amount is None:
            return FeeBreakdown.zero()
        return calculate_with_schedule(self.amount, self.schedule)

    # =======================
    # Validation
    # =======================

    def validate(self, require_password: bool = False) -> ValidationResult:
        """
        Check every submit gate

        Args:
            require_password: Also require the password (final submission)

        Returns:
            ValidationResult, ``ok`` when the form may be submitted
        """
        result = ValidationResult()

        if not self.fees.available:
            message = (
                self.fees.error.user_message if self.fees.error
                else "Transaction fees have not been loaded"
            )
            result.add("fees", message)

        result.merge(self._validate_form())

        if self.checks_balance and "fees" not in result.errors:
            breakdown = self.breakdown()
            if breakdown.amount > 0:
                if self.balance is None:
                    result.add("balance", "Wallet balance unavailable")
                else:
                    result.merge(check_balance(
                        breakdown.total, self.debit_currency, self.balance, field=self.balance_field
                    ))

        if require_password and self.password_required:
            result.merge(check_required("password", self.password, "Please enter your password"))

        return result

    @property
    def balance_field(self) -> str:
        return "amount"

    @property
    def can_submit(self) -> bool:
        """Submit button gate"""
        if self.state in (FlowState.SUBMITTING, FlowState.SUCCESS, FlowState.AWAITING_RECIPIENT_LOOKUP):
            return False
        return self.validate(require_password=True).ok

    def _validate_form(self) -> ValidationResult:
        raise NotImplementedError

    # =======================
    # Confirmation / submission
    # =======================

    async def prepare(self) -> Confirmation:
        """
        Validate the form and move to the confirmation step

        Raises:
            FormValidationError: Form is not valid
            RecipientLookupError: Recipient could not be found (state back to IDLE)
        """
        self.validate().raise_for_errors()

        if self.requires_lookup:
            self._transition(FlowState.AWAITING_RECIPIENT_LOOKUP)
            try:
                await self._lookup()
            except (APIError, FlowError):
                self._transition(FlowState.IDLE)
                raise

        self._transition(FlowState.CONFIRMING)
        self._confirmation = Confirmation(
            kind=self.kind,
            currency=self.debit_currency,
            schedule=self.schedule,
            breakdown=self.breakdown(),
            idempotency_key=str(uuid.uuid4()),
            debits_wallet=self.checks_balance,
            **self._confirmation_extra()
        )
        self._confirmation.payload = self._build_payload()
        logger.info(
            f"{type(self).__name__} confirming {self._confirmation.breakdown.total} "
            f"{self.debit_currency.value}"
        )
        return self._confirmation

    def confirmation(self) -> Confirmation:
        """Confirmation being shown; only available once prepared"""
        if self._confirmation is None:
            raise FlowError("Nothing to confirm yet")
        return self._confirmation

    async def submit(self, password: Optional[str] = None) -> Dict[str, Any]:
        """
        Submit the confirmed transaction

        Args:
            password: Account password (kept only until the call completes)

        Returns:
            Server response body

        Raises:
            InvalidTransitionError: Not in CONFIRMING (or ERROR for a retry)
            FormValidationError: Password missing
            InsufficientBalanceError: Fresh balance no longer covers the total
            APIError: Submission rejected; state moves to ERROR
        """
        if self.state == FlowState.ERROR and self._confirmation is not None:
            self._transition(FlowState.CONFIRMING)
        if self.state != FlowState.CONFIRMING:
            raise InvalidTransitionError(self.state, FlowState.SUBMITTING)

        confirmation = self.confirmation()
        if password is not None:
            self.password = password
        if self.password_required:
            check = check_required("password", self.password, "Please enter your password")
            if not check.ok:
                self.password = ""
                check.raise_for_errors()

        self._transition(FlowState.SUBMITTING)

        try:
            if self.revalidate_on_submit and confirmation.debits_wallet:
                fresh = await self.refresh_balance()
                if not check_balance(confirmation.breakdown.total, confirmation.currency, fresh).ok:
                    raise InsufficientBalanceError(INSUFFICIENT_BALANCE)

            payload = dict(confirmation.payload)
            if self.password_required:
                payload["password"] = self.password
            response = await self._send(payload, confirmation.idempotency_key)

        except (APIError, FlowError) as e:
            self.last_error = e
            self._transition(FlowState.ERROR)
            logger.error(f"{type(self).__name__} submission failed: {e}")
            raise

        finally:
            self.password = ""

        self.result = response
        self.last_error = None
        self._transition(FlowState.SUCCESS)
        logger.info(f"{type(self).__name__} submitted: {response.get('message', 'ok')}")
        return response

    def cancel(self):
        """Leave the confirmation step without submitting"""
        if self.state == FlowState.IDLE:
            return
        self._transition(FlowState.IDLE)
        self._confirmation = None

    def reset(self):
        """Back to an empty form after success or error"""
        if self.state != FlowState.IDLE:
            self._transition(FlowState.IDLE)
        self._confirmation = None
        self.result = None
        self.last_error = None
        self.password = ""
        self.amount_input = ""
        self._clear_form()

    # =======================
    # Hooks
    # =======================

    async def _lookup(self):
        pass

    def _confirmation_extra(self) -> Dict[str, Any]:
        return {}

    def _clear_form(self):
        pass

    def _build_payload(self) -> Dict[str, Any]:
        """Request body without the password, built once by prepare()"""
        raise NotImplementedError

    async def _send(self, payload: Dict[str, Any], idempotency_key: str) -> Dict[str, Any]:
        raise NotImplementedError
