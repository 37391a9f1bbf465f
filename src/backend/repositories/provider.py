"""
Repository provider for dependency injection.

Selects the Cosmos DB repository when Cosmos is configured and falls back
to the in-memory repository for local development.

Usage:
    from repositories.provider import get_product_vote_repository

    # In FastAPI dependencies:
    async def some_endpoint(
        repo: ProductVoteRepositoryProtocol = Depends(get_product_vote_repository),
    ):
        record = await repo.get_by_barcode(barcode)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from fastapi import Request

from core.config import settings
from models.product_vote import ProductVoteDocument

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


def is_cosmos_enabled() -> bool:
    """Check if Cosmos DB is configured and enabled."""
    # Cosmos DB can be configured via either:
    # 1. AZURE_COSMOS_ENDPOINT (for Azure deployment with RBAC)
    # 2. AZURE_COSMOS_CONNECTION_STRING (for local emulator)
    return settings.cosmos_enabled


# =============================================================================
# Repository Protocol (Interface)
# =============================================================================


@runtime_checkable
class ProductVoteRepositoryProtocol(Protocol):
    """Protocol defining product vote store operations."""

    async def get_by_barcode(self, barcode: str) -> Optional[ProductVoteDocument]: ...
    async def create(self, doc: ProductVoteDocument) -> ProductVoteDocument: ...
    async def replace(self, doc: ProductVoteDocument) -> ProductVoteDocument: ...
    async def count(self, statuses: list[str], require_name: bool = False) -> int: ...
    async def list_page(
        self,
        statuses: list[str],
        sort: str = "total_weighted_votes",
        offset: int = 0,
        limit: int = 20,
        require_name: bool = False,
    ) -> list[ProductVoteDocument]: ...
    async def list_by_voter(self, voter_id: str, limit: int = 100) -> list[ProductVoteDocument]: ...
    async def list_active_by_velocity(self, limit: int = 500) -> list[ProductVoteDocument]: ...
    async def list_missing_product_name(self, limit: int = 20) -> tuple[list[ProductVoteDocument], int]: ...


# =============================================================================
# Repository Factory
# =============================================================================


def create_product_vote_repository() -> ProductVoteRepositoryProtocol:
    """Create the repository matching the current configuration."""
    if is_cosmos_enabled():
        from repositories.cosmos_product_vote_repository import CosmosProductVoteRepository

        return CosmosProductVoteRepository()

    from repositories.memory_product_vote_repository import InMemoryProductVoteRepository

    logger.warning("Cosmos DB not configured, product votes are kept in memory")
    return InMemoryProductVoteRepository()


# =============================================================================
# FastAPI Dependencies
# =============================================================================


def get_product_vote_repository(request: Request) -> ProductVoteRepositoryProtocol:
    """Repository instance owned by the application (created at startup)."""
    repo = getattr(request.app.state, "product_vote_repository", None)
    if repo is None:
        repo = create_product_vote_repository()
        request.app.state.product_vote_repository = repo
    return repo
