"""
Tests for Cosmos DB product vote repository.
"""

from unittest.mock import patch

import pytest
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosHttpResponseError,
    CosmosResourceExistsError,
)

from core.exceptions import ConcurrentModificationError, ExternalDependencyFailure
from models.product_vote import OPEN_STATUSES, ProductVoteDocument
from repositories.cosmos_product_vote_repository import CosmosProductVoteRepository


@pytest.fixture
def stored_item():
    """A raw item as Cosmos returns it, including system properties."""
    doc = ProductVoteDocument(barcode="123", product_name="Oat Drink", total_weighted_votes=25)
    doc.refresh_derived()
    item = doc.to_store()
    item.update({"_rid": "abc", "_self": "dbs/x", "_attachments": "attachments/", "_ts": 1700000000, "_etag": '"0001"'})
    return item


@pytest.mark.unit
class TestCosmosProductVoteRepository:
    """Test CosmosProductVoteRepository operations."""

    async def test_get_by_barcode_keeps_etag(self, stored_item) -> None:
        with patch("repositories.cosmos_product_vote_repository.read_item") as mock_read:
            mock_read.return_value = stored_item

            result = await CosmosProductVoteRepository().get_by_barcode("123")

            mock_read.assert_awaited_once_with("product-votes", "123", partition_key="123")
            assert result.barcode == "123"
            assert result.etag == '"0001"'
            assert "_etag" not in result.to_store()

    async def test_get_by_barcode_missing(self) -> None:
        with patch("repositories.cosmos_product_vote_repository.read_item") as mock_read:
            mock_read.return_value = None

            assert await CosmosProductVoteRepository().get_by_barcode("nope") is None

    async def test_get_by_barcode_store_failure(self) -> None:
        with patch("repositories.cosmos_product_vote_repository.read_item") as mock_read:
            mock_read.side_effect = CosmosHttpResponseError(status_code=503, message="unavailable")

            with pytest.raises(ExternalDependencyFailure):
                await CosmosProductVoteRepository().get_by_barcode("123")

    async def test_create_sets_id_and_derived_fields(self, stored_item) -> None:
        with patch("repositories.cosmos_product_vote_repository.create_item") as mock_create:
            mock_create.return_value = stored_item
            doc = ProductVoteDocument(barcode="123", total_weighted_votes=500, voter_fingerprints=["v1"])

            await CosmosProductVoteRepository().create(doc)

            container, body = mock_create.await_args.args
            assert container == "product-votes"
            assert body["id"] == "123"
            assert body["unique_voters"] == 1
            assert body["funding_progress"] == 50
            assert "etag" not in body

    async def test_create_conflict_is_concurrent_modification(self) -> None:
        with patch("repositories.cosmos_product_vote_repository.create_item") as mock_create:
            mock_create.side_effect = CosmosResourceExistsError(status_code=409, message="exists")

            with pytest.raises(ConcurrentModificationError):
                await CosmosProductVoteRepository().create(ProductVoteDocument(barcode="123"))

    async def test_replace_passes_etag(self, stored_item) -> None:
        with patch("repositories.cosmos_product_vote_repository.replace_item_if_match") as mock_replace:
            mock_replace.return_value = stored_item
            doc = ProductVoteDocument.from_store(stored_item)

            await CosmosProductVoteRepository().replace(doc)

            assert mock_replace.await_args.args[:2] == ("product-votes", "123")
            assert mock_replace.await_args.kwargs["etag"] == '"0001"'

    async def test_replace_precondition_failure(self, stored_item) -> None:
        with patch("repositories.cosmos_product_vote_repository.replace_item_if_match") as mock_replace:
            mock_replace.side_effect = CosmosAccessConditionFailedError(status_code=412, message="precondition")
            doc = ProductVoteDocument.from_store(stored_item)

            with pytest.raises(ConcurrentModificationError):
                await CosmosProductVoteRepository().replace(doc)

    async def test_replace_without_etag(self) -> None:
        with pytest.raises(ConcurrentModificationError):
            await CosmosProductVoteRepository().replace(ProductVoteDocument(barcode="123"))

    async def test_list_page_uses_whitelisted_sort(self, stored_item) -> None:
        with patch("repositories.cosmos_product_vote_repository.query_items") as mock_query:
            mock_query.return_value = [stored_item]

            results = await CosmosProductVoteRepository().list_page(
                OPEN_STATUSES, sort="funding_progress", offset=20, limit=10, require_name=True
            )

            assert [r.barcode for r in results] == ["123"]
            query = mock_query.await_args.args[1]
            parameters = mock_query.await_args.kwargs["parameters"]
            assert "ORDER BY c.funding_progress DESC" in query
            assert "IS_STRING(c.product_name)" in query
            assert {"name": "@offset", "value": 20} in parameters
            assert {"name": "@status0", "value": "collecting_votes"} in parameters

    async def test_list_page_rejects_unknown_sort(self) -> None:
        with pytest.raises(ValueError):
            await CosmosProductVoteRepository().list_page(OPEN_STATUSES, sort="c.id; DROP")

    async def test_count(self) -> None:
        with patch("repositories.cosmos_product_vote_repository.query_count") as mock_count:
            mock_count.return_value = 7

            assert await CosmosProductVoteRepository().count(OPEN_STATUSES) == 7
            assert "COUNT(1)" in mock_count.await_args.args[1]

    async def test_list_by_voter(self, stored_item) -> None:
        with patch("repositories.cosmos_product_vote_repository.query_items") as mock_query:
            mock_query.return_value = [stored_item]

            await CosmosProductVoteRepository().list_by_voter("v1")

            assert "ARRAY_CONTAINS(c.voter_fingerprints, @voter_id)" in mock_query.await_args.args[1]
            assert {"name": "@voter_id", "value": "v1"} in mock_query.await_args.kwargs["parameters"]

    async def test_list_missing_product_name(self, stored_item) -> None:
        with (
            patch("repositories.cosmos_product_vote_repository.query_count") as mock_count,
            patch("repositories.cosmos_product_vote_repository.query_items") as mock_query,
        ):
            mock_count.return_value = 12
            mock_query.return_value = [stored_item]

            docs, total = await CosmosProductVoteRepository().list_missing_product_name(limit=5)

            assert total == 12
            assert len(docs) == 1
            assert {"name": "@limit", "value": 5} in mock_query.await_args.kwargs["parameters"]
