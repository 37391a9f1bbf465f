"""
Product metadata enrichment.

Vote records created from a bare barcode scan have no display name, and
unnamed products are hidden from the leaderboard. This service looks those
barcodes up in external product databases and backfills name, brand and
image. Runs on demand from the admin API and on a schedule.
"""

import asyncio
from functools import partial
from typing import Awaitable, Callable, Optional

import structlog

from core.config import settings
from core.exceptions import ProductVoteError
from models.product_vote import ProductVoteDocument
from repositories.provider import ProductVoteRepositoryProtocol
from schemas.product_vote import EnrichmentResponse, EnrichResult
from services.barcode_lookup import BarcodeLookupClient, BarcodeProduct
from services.cache_service import CacheService
from services.optimistic_update import run_optimistic_update

logger = structlog.get_logger(__name__)


class EnrichmentService:
    """Backfills missing product metadata, most voted products first."""

    def __init__(
        self,
        repository: ProductVoteRepositoryProtocol,
        lookup: BarcodeLookupClient,
        cache: Optional[CacheService] = None,
        delay_ms: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repository = repository
        self.lookup = lookup
        self.cache = cache
        self.delay_ms = settings.ENRICHMENT_DELAY_MS if delay_ms is None else delay_ms
        self._sleep = sleep

    async def enrich_missing(self, batch_size: Optional[int] = None) -> EnrichmentResponse:
        """
        Enrich one batch of unnamed records.

        Lookups are spaced by ENRICHMENT_DELAY_MS to stay inside the free
        tiers of the lookup APIs. A failed lookup is reported per barcode
        and does not stop the batch.
        """
        batch_size = batch_size or settings.ENRICHMENT_BATCH_SIZE
        docs, total_missing = await self.repository.list_missing_product_name(limit=batch_size)

        if not docs:
            return EnrichmentResponse(
                message="No products need enrichment",
                processed=0,
                enriched=0,
                remaining=0,
                results=[],
            )

        results: list[EnrichResult] = []
        enriched_count = 0

        for index, doc in enumerate(docs):
            if index > 0 and self.delay_ms > 0:
                await self._sleep(self.delay_ms / 1000)

            result = await self._enrich_one(doc.barcode)
            if result.enriched:
                enriched_count += 1
            results.append(result)

        if enriched_count and self.cache is not None:
            self.cache.delete_by_prefix(CacheService.PREFIX_PRODUCT_VOTES)

        logger.info(
            "enrichment_batch_complete",
            processed=len(docs),
            enriched=enriched_count,
            remaining=total_missing - len(docs),
        )

        return EnrichmentResponse(
            message=f"Enriched {enriched_count} of {len(docs)} products",
            processed=len(docs),
            enriched=enriched_count,
            remaining=total_missing - len(docs),
            results=results,
        )

    async def _enrich_one(self, barcode: str) -> EnrichResult:
        product = await self.lookup.lookup(barcode)
        if product is None:
            return EnrichResult(barcode=barcode, enriched=False, error="Product not found in external databases")

        try:
            saved = await run_optimistic_update(
                partial(self._apply_product, barcode, product),
                label=f"enrich_product:{barcode}",
            )
        except ProductVoteError as e:
            logger.warning("enrichment_update_failed", barcode=barcode, error=str(e))
            return EnrichResult(barcode=barcode, enriched=False, error=str(e))

        if saved is None:
            return EnrichResult(barcode=barcode, enriched=False, error="Product vote no longer exists")

        return EnrichResult(
            barcode=barcode,
            enriched=True,
            product_name=product.name,
            brand=product.brand,
            source=product.source,
        )

    async def _apply_product(self, barcode: str, product: BarcodeProduct) -> Optional[ProductVoteDocument]:
        doc = await self.repository.get_by_barcode(barcode)
        if doc is None:
            return None

        # A voter may have supplied a name since the batch was listed
        doc.product_name = doc.product_name or product.name
        doc.brand = doc.brand or product.brand
        doc.image_url = doc.image_url or product.image_url
        doc.open_food_facts_data = product.to_dict()
        return await self.repository.replace(doc)


async def run_enrichment_batch(repository: ProductVoteRepositoryProtocol, cache: Optional[CacheService] = None) -> EnrichmentResponse:
    """Run one enrichment batch with a short-lived lookup client."""
    async with BarcodeLookupClient() as lookup:
        service = EnrichmentService(repository, lookup, cache=cache)
        return await service.enrich_missing()
