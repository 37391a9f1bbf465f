"""
Shared dependencies for API endpoints.

Includes:
- Per-application cache and repository
- Product vote services wired to them
- Admin API key check
"""

import hmac
from typing import Annotated, AsyncIterator, Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request, status

from core.config import settings
from repositories.provider import ProductVoteRepositoryProtocol, get_product_vote_repository
from services.barcode_lookup import BarcodeLookupClient
from services.bounty_tracker import BountyTracker
from services.cache_service import CacheService
from services.enrichment_service import EnrichmentService
from services.lifecycle_service import LifecycleService
from services.notification_service import CompletionNotifier
from services.vote_aggregator import VoteAggregator
from services.vote_queries import VoteQueryService

logger = structlog.get_logger(__name__)

RepositoryDep = Annotated[ProductVoteRepositoryProtocol, Depends(get_product_vote_repository)]


# =============================================================================
# Cache
# =============================================================================


def get_cache(request: Request) -> CacheService:
    """Cache instance owned by the application (created at startup)."""
    cache = getattr(request.app.state, "cache", None)
    if cache is None:
        cache = CacheService(default_ttl_seconds=settings.CACHE_TTL_SECONDS)
        request.app.state.cache = cache
    return cache


CacheDep = Annotated[CacheService, Depends(get_cache)]


# =============================================================================
# Services
# =============================================================================


def get_vote_aggregator(repository: RepositoryDep, cache: CacheDep) -> VoteAggregator:
    return VoteAggregator(repository, cache)


def get_bounty_tracker(repository: RepositoryDep, cache: CacheDep) -> BountyTracker:
    return BountyTracker(repository, cache)


def get_vote_query_service(repository: RepositoryDep, cache: CacheDep) -> VoteQueryService:
    return VoteQueryService(repository, cache)


def get_completion_notifier() -> CompletionNotifier:
    return CompletionNotifier()


def get_lifecycle_service(
    repository: RepositoryDep,
    cache: CacheDep,
    notifier: Annotated[CompletionNotifier, Depends(get_completion_notifier)],
) -> LifecycleService:
    return LifecycleService(repository, notifier, cache)


async def get_barcode_lookup() -> AsyncIterator[BarcodeLookupClient]:
    """Lookup client with its own HTTP connection pool for the request."""
    async with BarcodeLookupClient() as lookup:
        yield lookup


def get_enrichment_service(
    repository: RepositoryDep,
    cache: CacheDep,
    lookup: Annotated[BarcodeLookupClient, Depends(get_barcode_lookup)],
) -> EnrichmentService:
    return EnrichmentService(repository, lookup, cache=cache)


# =============================================================================
# Admin Authentication
# =============================================================================


def require_admin(x_admin_key: Annotated[Optional[str], Header()] = None) -> None:
    """
    Dependency to require admin access.

    Admin endpoints are disabled entirely when ADMIN_API_KEY is not set.
    """
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API is disabled",
        )
    if not x_admin_key or not hmac.compare_digest(x_admin_key.encode(), settings.ADMIN_API_KEY.encode()):
        logger.warning("admin_key_rejected")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
