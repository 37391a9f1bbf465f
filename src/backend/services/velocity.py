"""
Scan velocity metrics.

Turns the bounded history of scan timestamps on a product vote record into
windowed counts, a ranking score and an urgency flag. Pure: the only input
besides the arguments is "now", which callers can pass explicitly.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from models.product_vote import UrgencyFlag

ONE_DAY_MS = 24 * 60 * 60 * 1000
SEVEN_DAYS_MS = 7 * ONE_DAY_MS
MAX_TIMESTAMPS = 500

URGENT_24H = 100
URGENT_7D = 500
TRENDING_24H = 20
TRENDING_7D = 100


@dataclass
class VelocityResult:
    """Velocity fields to store on the vote record."""

    scan_timestamps: list[int] = field(default_factory=list)
    scans_last_24h: int = 0
    scans_last_7d: int = 0
    velocity_score: int = 0
    urgency_flag: UrgencyFlag = UrgencyFlag.NORMAL


def now_ms() -> int:
    return int(time.time() * 1000)


def classify_urgency(scans_last_24h: int, scans_last_7d: int) -> UrgencyFlag:
    if scans_last_24h >= URGENT_24H or scans_last_7d >= URGENT_7D:
        return UrgencyFlag.URGENT
    if scans_last_24h >= TRENDING_24H or scans_last_7d >= TRENDING_7D:
        return UrgencyFlag.TRENDING
    return UrgencyFlag.NORMAL


def calculate_velocity(
    existing_timestamps: Optional[list[int]],
    total_weighted_votes: int,
    now: Optional[int] = None,
) -> VelocityResult:
    """
    Record a scan at `now` and recompute velocity.

    Keeps only timestamps from the last 7 days, appends now, then keeps the
    most recent MAX_TIMESTAMPS. 24h scans weigh 5x in the score.

    Args:
        existing_timestamps: Previously stored scan times (epoch ms)
        total_weighted_votes: Record total after this vote
        now: Current time in epoch ms (defaults to the wall clock)
    """
    current = now_ms() if now is None else now

    timestamps = [ts for ts in (existing_timestamps or []) if current - ts < SEVEN_DAYS_MS]
    timestamps.append(current)
    timestamps = timestamps[-MAX_TIMESTAMPS:]

    scans_last_24h = sum(1 for ts in timestamps if current - ts < ONE_DAY_MS)
    scans_last_7d = len(timestamps)

    return VelocityResult(
        scan_timestamps=timestamps,
        scans_last_24h=scans_last_24h,
        scans_last_7d=scans_last_7d,
        velocity_score=scans_last_24h * 5 + scans_last_7d + total_weighted_votes,
        urgency_flag=classify_urgency(scans_last_24h, scans_last_7d),
    )
