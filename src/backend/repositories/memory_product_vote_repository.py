"""
In-memory product vote repository.

Used for local development when Cosmos DB is not configured, and in tests.
Emulates Cosmos ETags with a per-document version counter so conditional
replace behaves like the real store under concurrent requests.
"""

import asyncio
from typing import Optional

from core.exceptions import ConcurrentModificationError
from models.product_vote import ACTIVE_STATUSES, ProductVoteDocument


class InMemoryProductVoteRepository:
    """Process-local store with compare-and-swap semantics."""

    def __init__(self) -> None:
        self._items: dict[str, dict] = {}
        self._versions: dict[str, int] = {}
        self._lock = asyncio.Lock()

    def _load(self, barcode: str) -> ProductVoteDocument:
        doc = ProductVoteDocument.model_validate(self._items[barcode])
        doc.etag = str(self._versions[barcode])
        return doc

    def _all(self) -> list[ProductVoteDocument]:
        return [self._load(barcode) for barcode in self._items]

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_barcode(self, barcode: str) -> Optional[ProductVoteDocument]:
        async with self._lock:
            if barcode not in self._items:
                return None
            return self._load(barcode)

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, doc: ProductVoteDocument) -> ProductVoteDocument:
        doc.refresh_derived()
        async with self._lock:
            if doc.barcode in self._items:
                raise ConcurrentModificationError(f"Product vote {doc.barcode} was created concurrently")
            self._items[doc.barcode] = doc.to_store()
            self._versions[doc.barcode] = 1
            return self._load(doc.barcode)

    async def replace(self, doc: ProductVoteDocument) -> ProductVoteDocument:
        doc.refresh_derived()
        async with self._lock:
            current = self._versions.get(doc.barcode)
            if current is None or doc.etag != str(current):
                raise ConcurrentModificationError(f"Product vote {doc.barcode} changed during update")
            self._items[doc.barcode] = doc.to_store()
            self._versions[doc.barcode] = current + 1
            return self._load(doc.barcode)

    # ========================================================================
    # Query Operations
    # ========================================================================

    def _filter(self, statuses: list[str], require_name: bool) -> list[ProductVoteDocument]:
        docs = [d for d in self._all() if d.status in statuses]
        if require_name:
            docs = [d for d in docs if d.product_name]
        return docs

    async def count(self, statuses: list[str], require_name: bool = False) -> int:
        async with self._lock:
            return len(self._filter(statuses, require_name))

    async def list_page(
        self,
        statuses: list[str],
        sort: str = "total_weighted_votes",
        offset: int = 0,
        limit: int = 20,
        require_name: bool = False,
    ) -> list[ProductVoteDocument]:
        if sort not in ProductVoteDocument.model_fields:
            raise ValueError(f"Unsupported sort field: {sort}")
        async with self._lock:
            docs = self._filter(statuses, require_name)
        docs.sort(key=lambda d: getattr(d, sort), reverse=True)
        return docs[offset : offset + limit]

    async def list_by_voter(self, voter_id: str, limit: int = 100) -> list[ProductVoteDocument]:
        async with self._lock:
            docs = [d for d in self._all() if voter_id in d.voter_fingerprints]
        docs.sort(key=lambda d: d.updated_at, reverse=True)
        return docs[:limit]

    async def list_active_by_velocity(self, limit: int = 500) -> list[ProductVoteDocument]:
        return await self.list_page(ACTIVE_STATUSES, sort="velocity_score", offset=0, limit=limit)

    async def list_missing_product_name(self, limit: int = 20) -> tuple[list[ProductVoteDocument], int]:
        async with self._lock:
            docs = [d for d in self._all() if not d.product_name]
        docs.sort(key=lambda d: d.total_weighted_votes, reverse=True)
        return docs[:limit], len(docs)
