"""
Photo bounty tracking.

A voter who adds photos to someone else's product request earns the
request a bounty bonus. The original voters can contribute photos too, but
they cannot bounty their own request.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from core.exceptions import NotFoundError
from models.product_vote import BOUNTY_CONTRIBUTION_WEIGHT, PhotoContributor, ProductVoteDocument
from repositories.provider import ProductVoteRepositoryProtocol
from schemas.product_vote import ContributeRequest, ContributionResponse
from services.cache_service import CacheService
from services.optimistic_update import run_optimistic_update

logger = structlog.get_logger(__name__)

ALREADY_CONTRIBUTED_MESSAGE = "You have already contributed photos to this product."


@dataclass
class AppliedContribution:
    record: ProductVoteDocument
    applied: bool
    bonus_weight: int = 0
    threshold_reached: bool = False


class BountyTracker:
    """Registers photo contributions against existing vote records."""

    def __init__(
        self,
        repository: ProductVoteRepositoryProtocol,
        cache: Optional[CacheService] = None,
    ):
        self.repository = repository
        self.cache = cache

    async def register_contribution(self, command: ContributeRequest) -> ContributionResponse:
        """
        Register a photo contribution.

        A repeat contribution from the same identity reports success=False
        and writes nothing.

        Raises:
            NotFoundError: No vote record exists for the barcode
            ConcurrencyExhausted: The record kept changing under us
        """
        outcome = await run_optimistic_update(
            lambda: self._apply_contribution(command),
            label=f"register_contribution:{command.barcode}",
        )
        record = outcome.record

        if not outcome.applied:
            logger.info(
                "contribution_duplicate",
                barcode=record.barcode,
                submission_id=command.submission_id,
            )
            return ContributionResponse(
                success=False,
                bounty_awarded=False,
                bonus_weight=0,
                new_total_votes=record.total_weighted_votes,
                total_contributors=record.total_contributors,
                funding_progress=record.funding_progress,
                status=record.status,
                message=ALREADY_CONTRIBUTED_MESSAGE,
            )

        if self.cache is not None:
            self.cache.delete_by_prefix(CacheService.PREFIX_PRODUCT_VOTES)

        logger.info(
            "contribution_registered",
            barcode=record.barcode,
            submission_id=command.submission_id,
            bonus_weight=outcome.bonus_weight,
            total_weighted_votes=record.total_weighted_votes,
        )
        if outcome.threshold_reached:
            logger.info(
                "threshold_reached",
                barcode=record.barcode,
                total_weighted_votes=record.total_weighted_votes,
                funding_threshold=record.funding_threshold,
            )

        if outcome.bonus_weight > 0:
            message = f"Bounty earned! Your photos added +{outcome.bonus_weight} votes to this request."
        else:
            message = "Photos added! Since you're the original voter, no bounty bonus applies."

        return ContributionResponse(
            success=True,
            bounty_awarded=outcome.bonus_weight > 0,
            bonus_weight=outcome.bonus_weight,
            new_total_votes=record.total_weighted_votes,
            total_contributors=record.total_contributors,
            funding_progress=record.funding_progress,
            status=record.status,
            message=message,
        )

    async def _apply_contribution(self, command: ContributeRequest) -> AppliedContribution:
        doc = await self.repository.get_by_barcode(command.barcode)
        if doc is None:
            raise NotFoundError(f"No vote request exists for barcode {command.barcode}")

        contributor = command.contributor_identity
        if doc.has_contributor(contributor):
            return AppliedContribution(record=doc, applied=False)

        bonus_weight = 0 if doc.has_voter(contributor) else BOUNTY_CONTRIBUTION_WEIGHT
        doc.photo_contributors.append(
            PhotoContributor(
                voter_id=contributor,
                user_id=command.user_id,
                submission_id=command.submission_id,
                bonus_weight=bonus_weight,
            )
        )
        threshold_reached = doc.add_weight(bonus_weight)

        saved = await self.repository.replace(doc)
        return AppliedContribution(
            record=saved,
            applied=True,
            bonus_weight=bonus_weight,
            threshold_reached=threshold_reached,
        )
