"""Tests for the product vote document model."""

from datetime import datetime, timezone

import pytest

from models.product_vote import (
    ProductVoteDocument,
    ProductVoteStatus,
    calculate_funding_progress,
    is_storable_barcode,
    status_rank,
)


@pytest.mark.unit
class TestFundingProgress:
    @pytest.mark.parametrize(
        "total,threshold,expected",
        [(0, 1000, 0), (5, 1000, 1), (4, 1000, 0), (25, 100, 25), (999, 1000, 100), (105, 100, 100), (2000, 1000, 100)],
    )
    def test_progress(self, total, threshold, expected):
        assert calculate_funding_progress(total, threshold) == expected


@pytest.mark.unit
class TestProductVoteDocument:
    def test_add_weight_crosses_once(self):
        doc = ProductVoteDocument(barcode="123", funding_threshold=100, total_weighted_votes=90)

        assert doc.add_weight(10) is True
        assert doc.status == ProductVoteStatus.THRESHOLD_REACHED
        assert doc.threshold_reached_at is not None
        assert len(doc.status_history) == 1

        assert doc.add_weight(10) is False
        assert len(doc.status_history) == 1

    def test_add_weight_below_threshold(self):
        doc = ProductVoteDocument(barcode="123", funding_threshold=100)

        assert doc.add_weight(99) is False
        assert doc.status == ProductVoteStatus.COLLECTING_VOTES

    def test_zero_weight_never_crosses(self):
        doc = ProductVoteDocument(barcode="123", funding_threshold=100, total_weighted_votes=99)

        assert doc.add_weight(0) is False
        assert doc.total_weighted_votes == 99

    def test_negative_weight_rejected(self):
        with pytest.raises(ValueError):
            ProductVoteDocument(barcode="123").add_weight(-1)

    def test_refresh_derived(self):
        doc = ProductVoteDocument(
            barcode="123",
            funding_threshold=200,
            total_weighted_votes=50,
            voter_fingerprints=["a", "b", "c"],
        )

        doc.refresh_derived()

        assert doc.id == "123"
        assert doc.unique_voters == 3
        assert doc.funding_progress == 25

    def test_from_store_strips_system_properties(self):
        doc = ProductVoteDocument.from_store(
            {"id": "123", "barcode": "123", "_rid": "x", "_ts": 1, "_etag": '"e1"', "unknown_field": 1}
        )

        assert doc.etag == '"e1"'
        stored = doc.to_store()
        assert "_rid" not in stored
        assert "etag" not in stored
        assert "unknown_field" not in stored

    def test_scout_number(self):
        doc = ProductVoteDocument(barcode="123", voter_fingerprints=["a", "b"])

        assert doc.scout_number("a") == 1
        assert doc.scout_number("b") == 2
        assert doc.scout_number("z") is None

    def test_status_rank_order(self):
        ranks = [status_rank(s) for s in ProductVoteStatus]
        assert ranks == sorted(ranks)
        assert status_rank("complete") > status_rank("collecting_votes")

    def test_stored_timestamps_sort_chronologically(self):
        whole_second = ProductVoteDocument(barcode="a", created_at=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
        half_second = ProductVoteDocument(
            barcode="b", created_at=datetime(2024, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)
        )

        first = whole_second.to_store()["created_at"]
        second = half_second.to_store()["created_at"]

        assert first == "2024-01-01T12:00:00.000000Z"
        assert first < second
        assert ProductVoteDocument.from_store(whole_second.to_store()).created_at == whole_second.created_at

    @pytest.mark.parametrize(
        "barcode,expected",
        [("5000328657950", True), ("A-1", True), ("A/B", False), ("A#B", False), ("A?B", False), ("A\\B", False)],
    )
    def test_storable_barcode(self, barcode, expected):
        assert is_storable_barcode(barcode) is expected
