"""
Referral Stats - Generation-based referral statistics of a pack
"""

import logging
from typing import Any, Dict, List, Optional

from solifin.models import GenerationCommission, GenerationSummary, PackStats

logger = logging.getLogger(__name__)

GENERATIONS = 4


def summarize_generations(stats: PackStats) -> List[GenerationSummary]:
    """
    One line per generation (1 to 4) with referral count and commissions

    Missing generations are reported as zero.
    """
    general = stats.general_stats
    summaries = []
    for index in range(GENERATIONS):
        referrals = general.referrals_by_generation[index] if index < len(general.referrals_by_generation) else 0
        commission = (
            general.commissions_by_generation[index]
            if index < len(general.commissions_by_generation)
            else GenerationCommission()
        )
        summaries.append(GenerationSummary(
            generation=index + 1,
            referrals=referrals,
            commission_usd=commission.usd,
            commission_cdf=commission.cdf,
            commission_total=commission.total
        ))
    return summaries


def best_generation(summaries: List[GenerationSummary]) -> int:
    """Generation with the highest commission total (the first one on ties)"""
    if not summaries:
        return 1
    best = summaries[0]
    for summary in summaries[1:]:
        if summary.commission_total > best.commission_total:
            best = summary
    return best.generation


class ReferralStatsService:
    """Pack statistics screen"""

    def __init__(self, api, per_page: int = 25):
        self.api = api
        self.per_page = per_page

    async def get_pack_stats(self, pack_id: int) -> PackStats:
        stats = await self.api.get_pack_detailed_stats(pack_id)
        if stats.general_stats.best_generation is None:
            stats.general_stats.best_generation = best_generation(summarize_generations(stats))
        logger.debug(f"Loaded stats for pack {pack_id}: {stats.general_stats.total_referrals} referrals")
        return stats

    async def get_pack_referrals(
        self,
        pack_id: int,
        generation: int = 1,
        page: int = 1,
        search: str = "",
        status: str = "all",
        start_date: Optional[str] = None,
        end_date: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Referrals of one generation tab

        Args:
            pack_id: Pack whose referral tree is listed
            generation: 1 to 4
            page: Page number
            search: Name / account filter
            status: "all", "active" or "inactive"
            start_date: Purchase date lower bound (YYYY-MM-DD)
            end_date: Purchase date upper bound (YYYY-MM-DD)

        Raises:
            ValueError: Generation outside 1..4
        """
        if not 1 <= generation <= GENERATIONS:
            raise ValueError(f"Generation must be between 1 and {GENERATIONS}")
        return await self.api.get_pack_referrals(
            pack_id,
            page=page,
            per_page=self.per_page,
            search=search,
            status=status,
            start_date=start_date,
            end_date=end_date,
            generation_tab=generation - 1
        )
