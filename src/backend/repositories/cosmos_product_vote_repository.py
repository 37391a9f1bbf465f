"""
Cosmos DB product vote repository.

Every product vote document lives in its own logical partition
(partition key /barcode, id == barcode), so reads are point reads and
writes are conditional replaces guarded by the document ETag.
"""

import logging
from typing import Any, Optional

from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosHttpResponseError,
    CosmosResourceExistsError,
)

from core.exceptions import ConcurrentModificationError, ExternalDependencyFailure
from db.cosmos_session import (
    PRODUCT_VOTES_CONTAINER,
    create_item,
    query_count,
    query_items,
    read_item,
    replace_item_if_match,
)
from models.product_vote import ACTIVE_STATUSES, ProductVoteDocument

logger = logging.getLogger(__name__)

# Whitelisted sort fields; interpolated into ORDER BY so never taken from input
SORT_FIELDS = {
    "total_weighted_votes": "c.total_weighted_votes",
    "created_at": "c.created_at",
    "funding_progress": "c.funding_progress",
    "velocity_score": "c.velocity_score",
    "updated_at": "c.updated_at",
}


def _status_filter(statuses: list[str], parameters: list[dict[str, Any]]) -> str:
    """Build an IN clause for statuses and append its parameters."""
    names = []
    for idx, status in enumerate(statuses):
        name = f"@status{idx}"
        names.append(name)
        parameters.append({"name": name, "value": status})
    return f"c.status IN ({', '.join(names)})"


class CosmosProductVoteRepository:
    """Repository for product vote documents using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_barcode(self, barcode: str) -> Optional[ProductVoteDocument]:
        """Get the vote record for a barcode (direct point read)."""
        try:
            data = await read_item(PRODUCT_VOTES_CONTAINER, barcode, partition_key=barcode)
        except CosmosHttpResponseError as e:
            raise ExternalDependencyFailure(f"Failed to read product vote {barcode}: {e}") from e
        if data is None:
            return None
        return ProductVoteDocument.from_store(data)

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, doc: ProductVoteDocument) -> ProductVoteDocument:
        """
        Create a new vote record.

        Raises ConcurrentModificationError when another request created the
        record for this barcode first.
        """
        doc.refresh_derived()
        try:
            created = await create_item(PRODUCT_VOTES_CONTAINER, doc.to_store())
        except CosmosResourceExistsError as e:
            raise ConcurrentModificationError(f"Product vote {doc.barcode} was created concurrently") from e
        except CosmosHttpResponseError as e:
            raise ExternalDependencyFailure(f"Failed to create product vote {doc.barcode}: {e}") from e
        logger.debug(f"Created product vote for barcode {doc.barcode}")
        return ProductVoteDocument.from_store(created)

    async def replace(self, doc: ProductVoteDocument) -> ProductVoteDocument:
        """
        Replace a vote record if it is unchanged since it was read.

        Raises ConcurrentModificationError on ETag mismatch.
        """
        if not doc.etag:
            raise ConcurrentModificationError(f"Product vote {doc.barcode} has no version to match")
        doc.refresh_derived()
        try:
            replaced = await replace_item_if_match(
                PRODUCT_VOTES_CONTAINER,
                doc.barcode,
                doc.to_store(),
                etag=doc.etag,
            )
        except CosmosAccessConditionFailedError as e:
            raise ConcurrentModificationError(f"Product vote {doc.barcode} changed during update") from e
        except CosmosHttpResponseError as e:
            raise ExternalDependencyFailure(f"Failed to update product vote {doc.barcode}: {e}") from e
        return ProductVoteDocument.from_store(replaced)

    # ========================================================================
    # Query Operations
    # ========================================================================

    async def _query(self, query: str, parameters: list[dict[str, Any]], max_items: int | None = None):
        try:
            results = await query_items(PRODUCT_VOTES_CONTAINER, query, parameters=parameters, max_items=max_items)
        except CosmosHttpResponseError as e:
            raise ExternalDependencyFailure(f"Product vote query failed: {e}") from e
        return [ProductVoteDocument.from_store(r) for r in results]

    async def count(self, statuses: list[str], require_name: bool = False) -> int:
        """Count records in the given statuses."""
        parameters: list[dict[str, Any]] = []
        conditions = [_status_filter(statuses, parameters)]
        if require_name:
            conditions.append("IS_STRING(c.product_name) AND c.product_name != ''")
        query = f"SELECT VALUE COUNT(1) FROM c WHERE {' AND '.join(conditions)}"
        try:
            return await query_count(PRODUCT_VOTES_CONTAINER, query, parameters=parameters)
        except CosmosHttpResponseError as e:
            raise ExternalDependencyFailure(f"Product vote count failed: {e}") from e

    async def list_page(
        self,
        statuses: list[str],
        sort: str = "total_weighted_votes",
        offset: int = 0,
        limit: int = 20,
        require_name: bool = False,
    ) -> list[ProductVoteDocument]:
        """List records in the given statuses, sorted descending by a whitelisted field."""
        if sort not in SORT_FIELDS:
            raise ValueError(f"Unsupported sort field: {sort}")
        parameters: list[dict[str, Any]] = []
        conditions = [_status_filter(statuses, parameters)]
        if require_name:
            conditions.append("IS_STRING(c.product_name) AND c.product_name != ''")
        parameters.extend(
            [
                {"name": "@offset", "value": offset},
                {"name": "@limit", "value": limit},
            ]
        )
        query = f"""
            SELECT * FROM c
            WHERE {' AND '.join(conditions)}
            ORDER BY {SORT_FIELDS[sort]} DESC
            OFFSET @offset LIMIT @limit
        """
        return await self._query(query, parameters)

    async def list_by_voter(self, voter_id: str, limit: int = 100) -> list[ProductVoteDocument]:
        """All records the voter appears in, most recently updated first."""
        query = """
            SELECT * FROM c
            WHERE ARRAY_CONTAINS(c.voter_fingerprints, @voter_id)
            ORDER BY c.updated_at DESC
            OFFSET 0 LIMIT @limit
        """
        return await self._query(
            query,
            [
                {"name": "@voter_id", "value": voter_id},
                {"name": "@limit", "value": limit},
            ],
        )

    async def list_active_by_velocity(self, limit: int = 500) -> list[ProductVoteDocument]:
        """Records still in the testing queue, highest velocity first."""
        return await self.list_page(ACTIVE_STATUSES, sort="velocity_score", offset=0, limit=limit)

    async def list_missing_product_name(self, limit: int = 20) -> tuple[list[ProductVoteDocument], int]:
        """Records without a product name, most voted first, plus the total count."""
        where = "NOT IS_DEFINED(c.product_name) OR IS_NULL(c.product_name) OR c.product_name = ''"
        try:
            total = await query_count(
                PRODUCT_VOTES_CONTAINER,
                f"SELECT VALUE COUNT(1) FROM c WHERE {where}",
            )
        except CosmosHttpResponseError as e:
            raise ExternalDependencyFailure(f"Product vote count failed: {e}") from e
        query = f"""
            SELECT * FROM c
            WHERE {where}
            ORDER BY c.total_weighted_votes DESC
            OFFSET 0 LIMIT @limit
        """
        docs = await self._query(query, [{"name": "@limit", "value": limit}])
        return docs, total
