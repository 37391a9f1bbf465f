"""
Admin endpoints for product vote management.

These endpoints require the X-Admin-Key header and are used for:
- Advancing a product through the testing lifecycle
- Product metadata enrichment triggers
- Scheduler status checks
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import get_enrichment_service, get_lifecycle_service, require_admin
from schemas.product_vote import AdvanceStatusRequest, AdvanceStatusResponse, EnrichmentResponse
from services.enrichment_service import EnrichmentService
from services.lifecycle_service import LifecycleService

router = APIRouter(dependencies=[Depends(require_admin)])


class SchedulerStatus(BaseModel):
    """Status of the background scheduler."""

    running: bool
    jobs: list[dict]


@router.post("/product-votes/enrich", response_model=EnrichmentResponse)
async def trigger_enrichment(
    enrichment: Annotated[EnrichmentService, Depends(get_enrichment_service)],
) -> EnrichmentResponse:
    """
    Look up names for product votes that have none.

    Processes one batch, most voted products first, and reports how many
    unnamed products remain.
    """
    return await enrichment.enrich_missing()


@router.post("/product-votes/{barcode}/status", response_model=AdvanceStatusResponse)
async def advance_status(
    barcode: str,
    transition: AdvanceStatusRequest,
    lifecycle: Annotated[LifecycleService, Depends(get_lifecycle_service)],
) -> AdvanceStatusResponse:
    """
    Move a product forward in the testing lifecycle.

    Statuses only move forward. Completing a product notifies the voters
    who asked for results.
    """
    return await lifecycle.advance_status(
        barcode,
        transition.status,
        notes=transition.notes,
        linked_product_id=transition.linked_product_id,
    )


@router.get("/scheduler-status", response_model=SchedulerStatus)
async def get_scheduler_status() -> SchedulerStatus:
    """
    Get the status of the background scheduler.

    Returns information about:
    - Whether the scheduler is running
    - List of scheduled jobs and their next run times
    """
    from services.background_scheduler import get_scheduler

    scheduler = get_scheduler()
    jobs = [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
    return SchedulerStatus(running=scheduler.running, jobs=jobs)
