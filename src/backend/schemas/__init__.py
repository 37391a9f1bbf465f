"""Schemas module initialization."""

from schemas.product_vote import (
    ContributeRequest,
    ContributionResponse,
    RegisterVoteRequest,
    RegisterVoteResponse,
    VoteStatusResponse,
)

__all__ = [
    "RegisterVoteRequest",
    "RegisterVoteResponse",
    "ContributeRequest",
    "ContributionResponse",
    "VoteStatusResponse",
]
