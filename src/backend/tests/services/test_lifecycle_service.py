"""Tests for forward-only status transitions."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import NotFoundError, ValidationFailure
from models.product_vote import ProductVoteStatus
from services.lifecycle_service import LifecycleService


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.send_results_ready = AsyncMock(return_value={"sent": 2, "errors": 0})
    return notifier


@pytest.fixture
def lifecycle(repository, cache, notifier):
    return LifecycleService(repository, notifier, cache)


@pytest.fixture
async def record(repository, make_record):
    return await repository.create(
        make_record(barcode="123", total_weighted_votes=1200, notify_on_complete=["user-1", "device-2"])
    )


@pytest.mark.unit
class TestAdvanceStatus:
    @pytest.mark.asyncio
    async def test_moves_forward_and_records_history(self, lifecycle, repository, record):
        result = await lifecycle.advance_status("123", ProductVoteStatus.QUEUED, notes="Lab slot booked")

        assert result.previous_status == ProductVoteStatus.COLLECTING_VOTES
        assert result.status == ProductVoteStatus.QUEUED
        assert result.status_history[-1].status == ProductVoteStatus.QUEUED
        assert result.status_history[-1].notes == "Lab slot booked"

        stored = await repository.get_by_barcode("123")
        assert stored.status == ProductVoteStatus.QUEUED

    @pytest.mark.asyncio
    async def test_entering_threshold_reached_stamps_time(self, lifecycle, record):
        result = await lifecycle.advance_status("123", ProductVoteStatus.THRESHOLD_REACHED)
        assert result.threshold_reached_at is not None

    @pytest.mark.asyncio
    async def test_backward_move_rejected(self, lifecycle, record):
        await lifecycle.advance_status("123", ProductVoteStatus.TESTING)

        with pytest.raises(ValidationFailure):
            await lifecycle.advance_status("123", ProductVoteStatus.QUEUED)

    @pytest.mark.asyncio
    async def test_same_status_rejected(self, lifecycle, record):
        with pytest.raises(ValidationFailure):
            await lifecycle.advance_status("123", ProductVoteStatus.COLLECTING_VOTES)

    @pytest.mark.asyncio
    async def test_unknown_barcode(self, lifecycle):
        with pytest.raises(NotFoundError):
            await lifecycle.advance_status("missing", ProductVoteStatus.QUEUED)

    @pytest.mark.asyncio
    async def test_complete_notifies_once(self, lifecycle, repository, notifier, record):
        result = await lifecycle.advance_status(
            "123", ProductVoteStatus.COMPLETE, linked_product_id="product-42"
        )

        assert result.notifications_sent == 2
        notifier.send_results_ready.assert_awaited_once()
        notified = notifier.send_results_ready.await_args.args[0]
        assert notified.linked_product_id == "product-42"
        assert notified.notify_on_complete == ["user-1", "device-2"]

        stored = await repository.get_by_barcode("123")
        assert stored.notifications_sent.results_ready is True
        assert stored.linked_product_id == "product-42"

    @pytest.mark.asyncio
    async def test_non_complete_transition_does_not_notify(self, lifecycle, notifier, record):
        result = await lifecycle.advance_status("123", ProductVoteStatus.TESTING)

        assert result.notifications_sent == 0
        notifier.send_results_ready.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transition_invalidates_query_cache(self, lifecycle, cache, record):
        cache.set("product-votes:leaderboard:10", "stale")

        await lifecycle.advance_status("123", ProductVoteStatus.QUEUED)

        assert cache.get("product-votes:leaderboard:10") is None
