"""
Read-side views over product vote records.

Status by barcode, the public leaderboard, the paginated testing queue and
the per-voter "my investigations" view. Nothing here mutates the store.
Leaderboard and queue pages are cached and invalidated by every write.
"""

import math
from typing import Optional

import structlog

from core.config import settings
from core.exceptions import ValidationFailure
from models.product_vote import (
    OPEN_STATUSES,
    ProductVoteDocument,
    ProductVoteStatus,
    UrgencyFlag,
    is_storable_barcode,
)
from repositories.provider import ProductVoteRepositoryProtocol
from schemas.product_vote import (
    Investigation,
    InvestigationStatus,
    LeaderboardEntry,
    LeaderboardResponse,
    MyInvestigationsResponse,
    QueueFilter,
    QueueProduct,
    QueueResponse,
    VoteStatusResponse,
)
from services.cache_service import CacheService

logger = structlog.get_logger(__name__)

UNKNOWN_PRODUCT_NAME = "Unknown Product"
MAX_PAGE_SIZE = 50
MAX_INVESTIGATIONS = 100
GLOBAL_QUEUE_SIZE = 500

QUEUE_SORT_FIELDS: dict[QueueFilter, str] = {
    QueueFilter.MOST_VOTED: "total_weighted_votes",
    QueueFilter.NEWEST: "created_at",
    QueueFilter.ALMOST_FUNDED: "funding_progress",
}


def clamp_limit(limit: Optional[int], default: int = 10) -> int:
    if limit is None:
        return default
    return max(1, min(MAX_PAGE_SIZE, limit))


def parse_queue_filter(value: Optional[str]) -> QueueFilter:
    """Unknown or missing filters fall back to most_voted."""
    try:
        return QueueFilter(value)
    except ValueError:
        return QueueFilter.MOST_VOTED


def investigation_status(status: str) -> InvestigationStatus:
    if status == ProductVoteStatus.COMPLETE:
        return "complete"
    if status in (ProductVoteStatus.QUEUED, ProductVoteStatus.TESTING):
        return "testing"
    return "waiting"


class VoteQueryService:
    """Read-only projections for the product vote API."""

    def __init__(
        self,
        repository: ProductVoteRepositoryProtocol,
        cache: Optional[CacheService] = None,
        cache_ttl_seconds: Optional[int] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.cache_ttl_seconds = (
            settings.CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        )

    def _cached(self, key: str):
        if self.cache is None:
            return None
        return self.cache.get(key)

    def _store(self, key: str, value) -> None:
        if self.cache is not None:
            self.cache.set(key, value, ttl_seconds=self.cache_ttl_seconds)

    async def get_status(self, barcode: str) -> VoteStatusResponse:
        barcode = (barcode or "").strip()
        if not barcode:
            raise ValidationFailure("Barcode is required")
        if not is_storable_barcode(barcode):
            raise ValidationFailure("Barcode cannot contain /, \\, ? or #")

        doc = await self.repository.get_by_barcode(barcode)
        if doc is None:
            return VoteStatusResponse(exists=False, barcode=barcode)

        return VoteStatusResponse(
            exists=True,
            barcode=doc.barcode,
            product_name=doc.product_name,
            brand=doc.brand,
            image_url=doc.image_url,
            total_votes=doc.unique_voters,
            total_weighted_votes=doc.total_weighted_votes,
            funding_progress=doc.funding_progress,
            funding_threshold=doc.funding_threshold,
            status=doc.status,
        )

    async def get_leaderboard(self, limit: Optional[int] = 10) -> LeaderboardResponse:
        """Top open requests by weighted votes. Unnamed products are hidden."""
        limit = clamp_limit(limit)
        cache_key = f"{CacheService.PREFIX_PRODUCT_VOTES}leaderboard:{limit}"
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        docs = await self.repository.list_page(
            OPEN_STATUSES,
            sort="total_weighted_votes",
            offset=0,
            limit=limit,
            require_name=True,
        )
        total = await self.repository.count(OPEN_STATUSES, require_name=True)

        response = LeaderboardResponse(
            leaderboard=[
                LeaderboardEntry(
                    rank=index + 1,
                    barcode=doc.barcode,
                    product_name=doc.product_name or UNKNOWN_PRODUCT_NAME,
                    brand=doc.brand,
                    image_url=doc.image_url,
                    total_voters=doc.unique_voters,
                    funding_progress=doc.funding_progress,
                    status=doc.status,
                )
                for index, doc in enumerate(docs)
            ],
            total=total,
        )
        self._store(cache_key, response)
        return response

    async def get_queue(
        self,
        filter: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = 20,
    ) -> QueueResponse:
        queue_filter = parse_queue_filter(filter)
        page = max(1, page or 1)
        limit = clamp_limit(limit, default=20)

        cache_key = f"{CacheService.PREFIX_PRODUCT_VOTES}queue:{queue_filter.value}:{page}:{limit}"
        cached = self._cached(cache_key)
        if cached is not None:
            return cached

        docs = await self.repository.list_page(
            OPEN_STATUSES,
            sort=QUEUE_SORT_FIELDS[queue_filter],
            offset=(page - 1) * limit,
            limit=limit,
        )
        total = await self.repository.count(OPEN_STATUSES)

        response = QueueResponse(
            products=[self._queue_product(doc) for doc in docs],
            total=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )
        self._store(cache_key, response)
        return response

    @staticmethod
    def _queue_product(doc: ProductVoteDocument) -> QueueProduct:
        return QueueProduct(
            barcode=doc.barcode,
            product_name=doc.product_name or UNKNOWN_PRODUCT_NAME,
            brand=doc.brand,
            image_url=doc.image_url,
            total_voters=doc.unique_voters,
            total_contributors=doc.total_contributors,
            total_weighted_votes=doc.total_weighted_votes,
            funding_progress=doc.funding_progress,
            funding_threshold=doc.funding_threshold,
            status=doc.status,
            urgency_flag=doc.urgency_flag,
            created_at=doc.created_at,
        )

    async def get_my_investigations(self, voter_id: Optional[str]) -> MyInvestigationsResponse:
        """
        Every product the voter has voted on, with its place in the global queue.

        Queue position is the 1-based rank by velocity score among the first
        500 active records; completed investigations have no position.
        """
        voter_id = (voter_id or "").strip()
        if not voter_id:
            raise ValidationFailure("A voter identity is required")

        docs = await self.repository.list_by_voter(voter_id, limit=MAX_INVESTIGATIONS)
        if not docs:
            return MyInvestigationsResponse(investigations=[], total_investigations=0, results_ready=0)

        global_queue = await self.repository.list_active_by_velocity(limit=GLOBAL_QUEUE_SIZE)
        positions = {doc.barcode: index + 1 for index, doc in enumerate(global_queue)}

        investigations = []
        for doc in docs:
            status = investigation_status(doc.status)
            scout_number = doc.scout_number(voter_id) or 1
            investigations.append(
                Investigation(
                    barcode=doc.barcode,
                    product_name=doc.product_name or UNKNOWN_PRODUCT_NAME,
                    brand=doc.brand,
                    image_url=doc.image_url,
                    status=status,
                    queue_position=None if status == "complete" else positions.get(doc.barcode),
                    funding_progress=doc.funding_progress,
                    your_voter_rank=scout_number,
                    total_voters=doc.unique_voters,
                    is_first_voter=scout_number == 1,
                    did_contribute_photos=doc.has_contributor(voter_id),
                    is_trending=doc.urgency_flag in (UrgencyFlag.TRENDING, UrgencyFlag.URGENT),
                    velocity_change_24h=doc.scans_last_24h,
                    linked_product_id=doc.linked_product_id,
                    created_at=doc.created_at,
                    updated_at=doc.updated_at,
                )
            )

        results_ready = sum(1 for i in investigations if i.status == "complete")
        logger.debug("investigations_loaded", count=len(investigations), results_ready=results_ready)
        return MyInvestigationsResponse(
            investigations=investigations,
            total_investigations=len(investigations),
            results_ready=results_ready,
        )
