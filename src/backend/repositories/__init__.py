"""Repository modules for product vote storage."""

from repositories.cosmos_product_vote_repository import CosmosProductVoteRepository
from repositories.memory_product_vote_repository import InMemoryProductVoteRepository

__all__ = [
    "CosmosProductVoteRepository",
    "InMemoryProductVoteRepository",
]
