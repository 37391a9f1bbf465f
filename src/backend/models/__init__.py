"""Document models module."""

from models.product_vote import (
    PhotoContributor,
    ProductVoteDocument,
    ProductVoteStatus,
    StatusHistoryEntry,
    UrgencyFlag,
    VoteType,
)

__all__ = [
    "ProductVoteDocument",
    "ProductVoteStatus",
    "VoteType",
    "UrgencyFlag",
    "PhotoContributor",
    "StatusHistoryEntry",
]
