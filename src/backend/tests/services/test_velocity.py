"""Tests for scan velocity metrics."""

import pytest

from models.product_vote import UrgencyFlag
from services.velocity import (
    MAX_TIMESTAMPS,
    ONE_DAY_MS,
    SEVEN_DAYS_MS,
    calculate_velocity,
    classify_urgency,
)

NOW = 1_700_000_000_000


@pytest.mark.unit
class TestCalculateVelocity:
    """Tests for calculate_velocity."""

    def test_first_scan(self):
        result = calculate_velocity([], total_weighted_votes=5, now=NOW)

        assert result.scan_timestamps == [NOW]
        assert result.scans_last_24h == 1
        assert result.scans_last_7d == 1
        assert result.velocity_score == 1 * 5 + 1 + 5
        assert result.urgency_flag == UrgencyFlag.NORMAL

    def test_old_timestamps_are_dropped(self):
        existing = [NOW - SEVEN_DAYS_MS - 1, NOW - SEVEN_DAYS_MS, NOW - 2 * ONE_DAY_MS]

        result = calculate_velocity(existing, total_weighted_votes=0, now=NOW)

        assert result.scan_timestamps == [NOW - 2 * ONE_DAY_MS, NOW]
        assert result.scans_last_24h == 1
        assert result.scans_last_7d == 2

    def test_none_history(self):
        result = calculate_velocity(None, total_weighted_votes=0, now=NOW)
        assert result.scan_timestamps == [NOW]

    def test_history_is_bounded(self):
        existing = sorted(NOW - 1000 - i for i in range(MAX_TIMESTAMPS))

        result = calculate_velocity(existing, total_weighted_votes=0, now=NOW)

        assert len(result.scan_timestamps) == MAX_TIMESTAMPS
        assert result.scan_timestamps[-1] == NOW
        # The oldest entry is the one that fell off
        assert existing[0] not in result.scan_timestamps

    def test_trending_scenario(self):
        """19 scans in the last hour plus this one make the product trending."""
        existing = [NOW - 60_000 * (i + 1) for i in range(19)]

        result = calculate_velocity(existing, total_weighted_votes=200, now=NOW)

        assert result.scans_last_24h == 20
        assert result.scans_last_7d == 20
        assert result.velocity_score == 20 * 5 + 20 + 200
        assert result.urgency_flag == UrgencyFlag.TRENDING

    def test_urgent_scenario(self):
        """101 scans inside the last 24 hours make the product urgent."""
        existing = [NOW - ONE_DAY_MS + 60_000 * (i + 1) for i in range(100)]

        result = calculate_velocity(existing, total_weighted_votes=505, now=NOW)

        assert len(result.scan_timestamps) == 101
        assert result.scans_last_24h == 101
        assert result.scans_last_7d == 101
        assert result.urgency_flag == UrgencyFlag.URGENT


@pytest.mark.unit
class TestClassifyUrgency:
    """Tests for urgency thresholds."""

    @pytest.mark.parametrize(
        "last_24h,last_7d,expected",
        [
            (0, 0, UrgencyFlag.NORMAL),
            (19, 99, UrgencyFlag.NORMAL),
            (20, 20, UrgencyFlag.TRENDING),
            (5, 100, UrgencyFlag.TRENDING),
            (100, 100, UrgencyFlag.URGENT),
            (10, 500, UrgencyFlag.URGENT),
        ],
    )
    def test_thresholds(self, last_24h, last_7d, expected):
        assert classify_urgency(last_24h, last_7d) == expected
