"""
Weighted product vote aggregation.

Applies one vote event to the per-barcode record: type counter, weighted
total, unique voter tracking, notification list, metadata backfill, scan
velocity and the funding threshold transition, all in a single
conditional write retried by the optimistic update loop.

Repeat votes from the same voter are separate events: each one adds its
weight, but the voter is only counted once in unique_voters.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from core.config import settings
from models.product_vote import (
    VOTE_WEIGHTS,
    ProductVoteDocument,
    VoteType,
)
from repositories.provider import ProductVoteRepositoryProtocol
from schemas.product_vote import ProductInfo, RegisterVoteRequest, RegisterVoteResponse
from services.cache_service import CacheService
from services.optimistic_update import run_optimistic_update
from services.velocity import VelocityResult, calculate_velocity, now_ms

logger = structlog.get_logger(__name__)

# Vote types that prove possession and therefore count towards velocity
VELOCITY_VOTE_TYPES = {VoteType.SCAN, VoteType.MEMBER_SCAN}


@dataclass
class AppliedVote:
    """Result of one successful read-modify-write cycle."""

    record: ProductVoteDocument
    is_new_voter: bool
    threshold_reached: bool


def apply_velocity(doc: ProductVoteDocument, velocity: VelocityResult) -> None:
    doc.scan_timestamps = velocity.scan_timestamps
    doc.scans_last_24h = velocity.scans_last_24h
    doc.scans_last_7d = velocity.scans_last_7d
    doc.velocity_score = velocity.velocity_score
    doc.urgency_flag = velocity.urgency_flag


def backfill_product_info(doc: ProductVoteDocument, command: RegisterVoteRequest) -> None:
    """Fill display metadata only where it is still unset."""
    hint = command.product_info
    if hint is None:
        return
    doc.product_name = doc.product_name or hint.name
    doc.brand = doc.brand or hint.brand
    doc.image_url = doc.image_url or hint.image_url


def build_vote_message(vote_type: VoteType, funding_progress: int, rank: int) -> str:
    """Pick the user-facing message for the funding tier and vote type."""
    vote_type = VoteType(vote_type)
    if funding_progress >= 100:
        return "This product has reached its funding goal! Testing will begin soon."
    if funding_progress >= 75:
        return f"Almost there! This product is {funding_progress}% funded for testing."

    weight = VOTE_WEIGHTS[vote_type.value]
    voter_suffix = f" You're voter #{rank}." if rank > 0 else ""
    if vote_type == VoteType.MEMBER_SCAN:
        return f"Your premium vote counts {weight}x!{voter_suffix}"
    if vote_type == VoteType.SCAN:
        return f"Vote registered! Your scan counts {weight}x.{voter_suffix}"
    if rank > 0:
        return f"Vote registered! You're voter #{rank} for this product."
    return "Vote registered!"


class VoteAggregator:
    """
    Registers weighted votes for product barcodes.

    Weights: search = 1, scan = 5, member_scan = 20.
    """

    def __init__(
        self,
        repository: ProductVoteRepositoryProtocol,
        cache: Optional[CacheService] = None,
        funding_threshold: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.repository = repository
        self.cache = cache
        self.funding_threshold = funding_threshold or settings.DEFAULT_FUNDING_THRESHOLD
        self.clock = clock

    async def register_vote(self, command: RegisterVoteRequest) -> RegisterVoteResponse:
        """
        Register one vote event.

        Raises:
            ConcurrencyExhausted: The record kept changing under us
            ExternalDependencyFailure: Only if raised outside the retry loop
        """
        vote_type = VoteType(command.vote_type)
        weight = VOTE_WEIGHTS[vote_type.value]

        applied = await run_optimistic_update(
            lambda: self._apply_vote(command, vote_type, weight),
            label=f"register_vote:{command.barcode}",
        )

        if self.cache is not None:
            self.cache.delete_by_prefix(CacheService.PREFIX_PRODUCT_VOTES)

        record = applied.record
        rank = record.unique_voters

        logger.info(
            "vote_registered",
            barcode=record.barcode,
            vote_type=vote_type.value,
            weight=weight,
            total_weighted_votes=record.total_weighted_votes,
            unique_voters=record.unique_voters,
            is_new_voter=applied.is_new_voter,
        )
        if applied.threshold_reached:
            logger.info(
                "threshold_reached",
                barcode=record.barcode,
                total_weighted_votes=record.total_weighted_votes,
                funding_threshold=record.funding_threshold,
            )

        return RegisterVoteResponse(
            total_votes=record.unique_voters,
            total_weighted_votes=record.total_weighted_votes,
            your_vote_rank=rank,
            is_new_voter=applied.is_new_voter,
            funding_progress=record.funding_progress,
            funding_threshold=record.funding_threshold,
            status=record.status,
            threshold_reached=applied.threshold_reached,
            product_info=ProductInfo(
                barcode=record.barcode,
                name=record.product_name,
                brand=record.brand,
                image_url=record.image_url,
            ),
            message=build_vote_message(vote_type, record.funding_progress, rank),
        )

    async def _apply_vote(
        self,
        command: RegisterVoteRequest,
        vote_type: VoteType,
        weight: int,
    ) -> AppliedVote:
        """One read -> compute -> conditional write cycle."""
        existing = await self.repository.get_by_barcode(command.barcode)
        if existing is None:
            return await self._create_record(command, vote_type, weight)

        doc = existing
        voter = command.voter_identity
        is_new_voter = bool(voter) and not doc.has_voter(voter)

        self._increment_counter(doc, vote_type)
        threshold_reached = doc.add_weight(weight)

        if is_new_voter:
            doc.voter_fingerprints.append(voter)

        notify_id = command.notify_id
        if command.notify_on_complete and notify_id and notify_id not in doc.notify_on_complete:
            doc.notify_on_complete.append(notify_id)

        backfill_product_info(doc, command)

        if vote_type in VELOCITY_VOTE_TYPES:
            apply_velocity(
                doc,
                calculate_velocity(doc.scan_timestamps, doc.total_weighted_votes, now=self.clock()),
            )

        saved = await self.repository.replace(doc)
        return AppliedVote(record=saved, is_new_voter=is_new_voter, threshold_reached=threshold_reached)

    async def _create_record(
        self,
        command: RegisterVoteRequest,
        vote_type: VoteType,
        weight: int,
    ) -> AppliedVote:
        """First vote for a barcode. Loses with ConcurrentModificationError if raced."""
        voter = command.voter_identity
        notify_id = command.notify_id

        doc = ProductVoteDocument(
            barcode=command.barcode,
            funding_threshold=self.funding_threshold,
            voter_fingerprints=[voter] if voter else [],
            notify_on_complete=[notify_id] if command.notify_on_complete and notify_id else [],
        )
        backfill_product_info(doc, command)
        self._increment_counter(doc, vote_type)
        threshold_reached = doc.add_weight(weight)

        if vote_type in VELOCITY_VOTE_TYPES:
            apply_velocity(doc, calculate_velocity([], doc.total_weighted_votes, now=self.clock()))

        saved = await self.repository.create(doc)
        return AppliedVote(record=saved, is_new_voter=bool(voter), threshold_reached=threshold_reached)

    @staticmethod
    def _increment_counter(doc: ProductVoteDocument, vote_type: VoteType) -> None:
        if vote_type == VoteType.SEARCH:
            doc.search_count += 1
        elif vote_type == VoteType.SCAN:
            doc.scan_count += 1
        else:
            doc.member_scan_count += 1
