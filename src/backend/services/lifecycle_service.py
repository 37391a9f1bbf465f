"""
Funding lifecycle management.

Moves product vote records through collecting_votes -> threshold_reached ->
queued -> testing -> complete. Only votes move a record to
threshold_reached on their own; the later stages are set by staff through
the admin API.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from core.exceptions import NotFoundError, ValidationFailure
from models.product_vote import ProductVoteDocument, ProductVoteStatus, is_storable_barcode, status_rank
from repositories.provider import ProductVoteRepositoryProtocol
from schemas.product_vote import AdvanceStatusResponse, StatusHistoryItem
from services.cache_service import CacheService
from services.notification_service import CompletionNotifier
from services.optimistic_update import run_optimistic_update

logger = structlog.get_logger(__name__)


@dataclass
class AppliedTransition:
    record: ProductVoteDocument
    previous_status: str
    notify_results_ready: bool


class LifecycleService:
    """Forward-only status transitions for product vote records."""

    def __init__(
        self,
        repository: ProductVoteRepositoryProtocol,
        notifier: CompletionNotifier,
        cache: Optional[CacheService] = None,
    ):
        self.repository = repository
        self.notifier = notifier
        self.cache = cache

    async def advance_status(
        self,
        barcode: str,
        new_status: ProductVoteStatus,
        notes: Optional[str] = None,
        linked_product_id: Optional[str] = None,
    ) -> AdvanceStatusResponse:
        """
        Move a record forward to new_status.

        Skipping stages is allowed. Entering complete for the first time
        notifies the voters who asked for results.

        Raises:
            ValidationFailure: Blank barcode, or the move is not forward
            NotFoundError: No record for the barcode
        """
        barcode = (barcode or "").strip()
        if not barcode:
            raise ValidationFailure("Barcode is required")
        if not is_storable_barcode(barcode):
            raise ValidationFailure("Barcode cannot contain /, \\, ? or #")
        new_status = ProductVoteStatus(new_status)

        applied = await run_optimistic_update(
            lambda: self._apply_transition(barcode, new_status, notes, linked_product_id),
            label=f"advance_status:{barcode}",
        )
        record = applied.record

        if self.cache is not None:
            self.cache.delete_by_prefix(CacheService.PREFIX_PRODUCT_VOTES)

        logger.info(
            "product_vote_status_changed",
            barcode=barcode,
            previous_status=applied.previous_status,
            status=new_status.value,
        )

        notifications_sent = 0
        if applied.notify_results_ready:
            result = await self.notifier.send_results_ready(record)
            notifications_sent = result.get("sent", 0)

        return AdvanceStatusResponse(
            barcode=record.barcode,
            previous_status=applied.previous_status,
            status=record.status,
            threshold_reached_at=record.threshold_reached_at,
            status_history=[
                StatusHistoryItem(status=entry.status, changed_at=entry.changed_at, notes=entry.notes)
                for entry in record.status_history
            ],
            notifications_sent=notifications_sent,
        )

    async def _apply_transition(
        self,
        barcode: str,
        new_status: ProductVoteStatus,
        notes: Optional[str],
        linked_product_id: Optional[str],
    ) -> AppliedTransition:
        doc = await self.repository.get_by_barcode(barcode)
        if doc is None:
            raise NotFoundError(f"No vote request exists for barcode {barcode}")

        previous_status = ProductVoteStatus(doc.status)
        if status_rank(new_status) <= status_rank(previous_status):
            raise ValidationFailure(
                f"Cannot move product vote from {previous_status.value} to {new_status.value}"
            )

        doc.set_status(new_status, notes)
        if linked_product_id:
            doc.linked_product_id = linked_product_id

        # Marked in the same write as the status so the notification goes out at most once
        notify = new_status == ProductVoteStatus.COMPLETE and not doc.notifications_sent.results_ready
        if notify:
            doc.notifications_sent.results_ready = True

        saved = await self.repository.replace(doc)
        return AppliedTransition(
            record=saved,
            previous_status=previous_status.value,
            notify_results_ready=notify,
        )
