"""
Fee Resolver - Fetches fee / commission percentages for each payment flow
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from solifin.api.errors import APIError
from solifin.flows.errors import FeeScheduleUnavailableError
from solifin.models import FeeSchedule
from solifin.models.enums import FeeKind
from solifin.services.fee_calculator import parse_amount

logger = logging.getLogger(__name__)


def _percentage(data: Dict[str, Any], *keys: str) -> Decimal:
    """Read the first present percentage key, also looking under ``data``"""
    sources = [data]
    if isinstance(data.get("data"), dict):
        sources.append(data["data"])

    for source in sources:
        for key in keys:
            if source.get(key) is not None:
                value = parse_amount(source[key])
                if value < 0:
                    raise ValueError(f"Negative {key}: {value}")
                return value

    raise ValueError(f"Missing {' / '.join(keys)} in fee response")


class FeeResolver:
    """
    Resolves a :class:`FeeSchedule` for a flow

    By default a failure raises :class:`FeeScheduleUnavailableError` and the
    flow stays blocked. With ``fail_open`` the resolver logs a warning and
    returns a zero schedule marked ``degraded``.
    """

    def __init__(self, api, reference_amount: int = 100, fail_open: bool = False):
        self.api = api
        self.reference_amount = reference_amount
        self.fail_open = fail_open

    @classmethod
    def from_config(cls, api, config) -> "FeeResolver":
        return cls(
            api,
            reference_amount=config.fee_reference_amount,
            fail_open=config.fee_fail_open
        )

    async def resolve(self, kind: FeeKind) -> FeeSchedule:
        """
        Fetch the fee schedule for a flow

        Args:
            kind: Which flow the schedule is for

        Returns:
            Resolved schedule

        Raises:
            FeeScheduleUnavailableError: Fetch or parse failed and fail_open is off
        """
        kind = FeeKind(kind)
        try:
            schedule = await self._fetch(kind)
        except (APIError, ValueError) as e:
            if self.fail_open:
                logger.warning(f"Fee schedule for {kind.value} unavailable, using 0%: {e}")
                return FeeSchedule.zero(kind, degraded=True)
            logger.error(f"Fee schedule for {kind.value} unavailable: {e}")
            raise FeeScheduleUnavailableError(
                "Unable to fetch transaction fees. Please try again.",
                cause=e
            ) from e

        logger.info(
            f"Resolved {kind.value} fees: {schedule.fee_percentage}% "
            f"+ {schedule.commission_percentage}% commission"
        )
        return schedule

    async def _fetch(self, kind: FeeKind) -> FeeSchedule:
        if kind == FeeKind.TRANSFER:
            data = await self.api.get_transfer_fees()
            return FeeSchedule(
                kind=kind,
                fee_percentage=_percentage(data, "fee_percentage", "percentage"),
                commission_percentage=_percentage(data, "fee_commission")
            )

        if kind == FeeKind.WITHDRAWAL:
            fee_data, commission_data = await asyncio.gather(
                self.api.get_withdrawal_fee(self.reference_amount),
                self.api.get_referral_commission()
            )
            return FeeSchedule(
                kind=kind,
                fee_percentage=_percentage(fee_data, "percentage", "fee_percentage"),
                commission_percentage=_percentage(commission_data, "percentage")
            )

        if kind == FeeKind.PACK_PURCHASE:
            data = await self.api.get_purchase_fee(self.reference_amount)
            return FeeSchedule(
                kind=kind,
                fee_percentage=_percentage(data, "percentage", "fee_percentage")
            )

        data = await self.api.get_virtual_purchase_fee()
        return FeeSchedule(
            kind=kind,
            fee_percentage=_percentage(data, "fee_percentage", "percentage")
        )


class CachedFeeSchedule:
    """Fee schedule held for the lifetime of one flow"""

    def __init__(self, resolver: FeeResolver, kind: FeeKind):
        self.resolver = resolver
        self.kind = kind
        self.schedule: Optional[FeeSchedule] = None
        self.error: Optional[FeeScheduleUnavailableError] = None

    @property
    def available(self) -> bool:
        return self.schedule is not None

    async def get(self) -> FeeSchedule:
        """Resolve once, then serve the cached schedule"""
        if self.schedule is None:
            await self.refresh()
        if self.schedule is None:
            raise self.error
        return self.schedule

    async def refresh(self) -> Optional[FeeSchedule]:
        """Re-fetch the schedule (the "recalculate fees" action)"""
        try:
            self.schedule = await self.resolver.resolve(self.kind)
            self.error = None
        except FeeScheduleUnavailableError as e:
            self.schedule = None
            self.error = e
        return self.schedule
