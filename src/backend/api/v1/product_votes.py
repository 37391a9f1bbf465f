"""
Product vote endpoints.

Users vote for untested products by searching or scanning their barcode.
Votes are weighted by proof of possession; once a product's weighted
votes reach its funding threshold it moves into the testing queue.

Domain errors raised by the services are mapped to HTTP responses by the
application's exception handlers.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Query

from api.deps import get_bounty_tracker, get_vote_aggregator, get_vote_query_service
from schemas.product_vote import (
    ContributeRequest,
    ContributionResponse,
    LeaderboardResponse,
    MyInvestigationsResponse,
    QueueResponse,
    RegisterVoteRequest,
    RegisterVoteResponse,
    VoteStatusResponse,
)
from services.bounty_tracker import BountyTracker
from services.vote_aggregator import VoteAggregator
from services.vote_queries import VoteQueryService

router = APIRouter()


@router.post("", response_model=RegisterVoteResponse)
async def register_vote(
    vote_data: RegisterVoteRequest,
    aggregator: Annotated[VoteAggregator, Depends(get_vote_aggregator)],
) -> RegisterVoteResponse:
    """
    Vote for a product to be tested.

    Vote weights:
    - search = 1 (curiosity)
    - scan = 5 (holding the product)
    - member_scan = 20 (member holding the product)

    Repeat votes from the same voter add weight but count once towards
    unique voters.
    """
    return await aggregator.register_vote(vote_data)


@router.get("/status", response_model=VoteStatusResponse)
async def get_vote_status(
    queries: Annotated[VoteQueryService, Depends(get_vote_query_service)],
    barcode: str = Query("", description="Product barcode"),
) -> VoteStatusResponse:
    """Current vote totals and funding status for a barcode."""
    return await queries.get_status(barcode)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    queries: Annotated[VoteQueryService, Depends(get_vote_query_service)],
    limit: int = Query(10, description="Number of products (max 50)"),
) -> LeaderboardResponse:
    """Most requested products that are still being funded."""
    return await queries.get_leaderboard(limit)


@router.get("/queue", response_model=QueueResponse)
async def get_queue(
    queries: Annotated[VoteQueryService, Depends(get_vote_query_service)],
    filter: Optional[str] = Query(None, description="most_voted, newest or almost_funded"),
    page: int = Query(1),
    limit: int = Query(20, description="Page size (max 50)"),
) -> QueueResponse:
    """Paginated testing queue."""
    return await queries.get_queue(filter=filter, page=page, limit=limit)


@router.post("/contribute", response_model=ContributionResponse)
async def contribute_photos(
    contribution: ContributeRequest,
    tracker: Annotated[BountyTracker, Depends(get_bounty_tracker)],
) -> ContributionResponse:
    """
    Register a photo contribution to an existing product request.

    Contributors who did not vote for the product add a bounty bonus of
    10 weighted votes. Contributing twice is a no-op.
    """
    return await tracker.register_contribution(contribution)


@router.get("/my-investigations", response_model=MyInvestigationsResponse)
async def get_my_investigations(
    queries: Annotated[VoteQueryService, Depends(get_vote_query_service)],
    x_fingerprint: Annotated[Optional[str], Header()] = None,
    voter_id: Optional[str] = Query(None),
) -> MyInvestigationsResponse:
    """
    Products the caller has voted on, with queue position and progress.

    The caller is identified by the X-Fingerprint header or the voter_id
    query parameter.
    """
    return await queries.get_my_investigations(x_fingerprint or voter_id)
