"""
Cosmos DB document model for product votes.

One document per barcode in the 'product-votes' container.

Partition key: /barcode (document id == barcode, so every vote for a
product is a single-partition point read and conditional replace).

"Proof of possession" weighting:
- search = 1x (curiosity signal)
- scan = 5x (the voter is holding the product)
- member_scan = 20x (verified member holding the product)
- bounty_contribution = 10x (photos added to someone else's request)
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

# ============================================================================
# Enums and constants
# ============================================================================


class VoteType(str, Enum):
    """How the voter found the product."""

    SEARCH = "search"
    SCAN = "scan"
    MEMBER_SCAN = "member_scan"


class ProductVoteStatus(str, Enum):
    """Funding lifecycle. Moves forward only, in declaration order."""

    COLLECTING_VOTES = "collecting_votes"
    THRESHOLD_REACHED = "threshold_reached"
    QUEUED = "queued"
    TESTING = "testing"
    COMPLETE = "complete"


class UrgencyFlag(str, Enum):
    """Scan velocity classification."""

    NORMAL = "normal"
    TRENDING = "trending"
    URGENT = "urgent"


VOTE_WEIGHTS: dict[str, int] = {
    VoteType.SEARCH.value: 1,
    VoteType.SCAN.value: 5,
    VoteType.MEMBER_SCAN.value: 20,
    "bounty_contribution": 10,
}

BOUNTY_CONTRIBUTION_WEIGHT = VOTE_WEIGHTS["bounty_contribution"]

STATUS_ORDER: list[ProductVoteStatus] = list(ProductVoteStatus)

# Statuses shown on the public leaderboard and queue
OPEN_STATUSES: list[str] = [
    ProductVoteStatus.COLLECTING_VOTES.value,
    ProductVoteStatus.THRESHOLD_REACHED.value,
]

# Statuses that still hold a position in the global testing queue
ACTIVE_STATUSES: list[str] = [
    ProductVoteStatus.COLLECTING_VOTES.value,
    ProductVoteStatus.THRESHOLD_REACHED.value,
    ProductVoteStatus.QUEUED.value,
    ProductVoteStatus.TESTING.value,
]

# Cosmos system properties that never belong in the domain model
COSMOS_SYSTEM_PROPERTIES = ("_rid", "_self", "_attachments", "_ts")

# Characters Cosmos DB does not allow in a document id (id == barcode)
INVALID_BARCODE_CHARACTERS = frozenset("/\\?#")

# Stored timestamps always carry microseconds so ISO strings sort chronologically
STORED_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def status_rank(status: str) -> int:
    """Position of a status in the forward-only lifecycle."""
    return STATUS_ORDER.index(ProductVoteStatus(status))


def is_storable_barcode(barcode: str) -> bool:
    return not INVALID_BARCODE_CHARACTERS.intersection(barcode)


def format_stored_datetime(value: datetime) -> str:
    """Fixed-width UTC ISO timestamp."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(STORED_DATETIME_FORMAT)


def calculate_funding_progress(total_weighted_votes: int, funding_threshold: int) -> int:
    """Funding progress percentage, rounded half up and capped at 100."""
    if funding_threshold <= 0:
        return 100
    return min(100, math.floor(total_weighted_votes / funding_threshold * 100 + 0.5))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Embedded documents
# ============================================================================


class PhotoContributor(BaseModel):
    """A voter who added photos to a product request."""

    voter_id: str
    user_id: Optional[str] = None
    submission_id: str
    contributed_at: datetime = Field(default_factory=utc_now)
    bonus_weight: int = 0


class StatusHistoryEntry(BaseModel):
    """One status change."""

    status: ProductVoteStatus
    changed_at: datetime = Field(default_factory=utc_now)
    notes: Optional[str] = None

    model_config = ConfigDict(use_enum_values=True)


class NotificationsSent(BaseModel):
    """Which lifecycle notifications have already gone out."""

    threshold_reached: bool = False
    testing_started: bool = False
    results_ready: bool = False


# ============================================================================
# Product vote document
# ============================================================================


class ProductVoteDocument(BaseModel):
    """
    Aggregated vote record for one product barcode.

    total_weighted_votes is never set directly by callers; it only grows by
    the weight of each applied vote or bounty event. funding_progress is
    derived and recomputed by refresh_derived() before every write.
    """

    id: str = ""
    barcode: str

    # Display metadata (first writer wins)
    product_name: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None

    # Vote counters
    search_count: int = 0
    scan_count: int = 0
    member_scan_count: int = 0
    total_weighted_votes: int = 0

    # Voter tracking
    unique_voters: int = 0
    voter_fingerprints: list[str] = Field(default_factory=list)
    notify_on_complete: list[str] = Field(default_factory=list)

    # Funding
    status: ProductVoteStatus = ProductVoteStatus.COLLECTING_VOTES
    funding_threshold: int = 1000
    funding_progress: int = 0
    threshold_reached_at: Optional[datetime] = None
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)
    notifications_sent: NotificationsSent = Field(default_factory=NotificationsSent)
    linked_product_id: Optional[str] = None

    # Velocity tracking (scan-type votes only)
    scan_timestamps: list[int] = Field(default_factory=list)
    scans_last_24h: int = 0
    scans_last_7d: int = 0
    velocity_score: int = 0
    urgency_flag: UrgencyFlag = UrgencyFlag.NORMAL

    # Photo bounties
    photo_contributors: list[PhotoContributor] = Field(default_factory=list)
    total_contributors: int = 0

    # External lookup payload stored by enrichment
    open_food_facts_data: Optional[dict[str, Any]] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # Store version (Cosmos _etag); never serialized into the document body
    etag: Optional[str] = Field(default=None, exclude=True)

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    @classmethod
    def from_store(cls, data: dict[str, Any]) -> "ProductVoteDocument":
        """Build a document from a raw stored item, keeping its ETag."""
        body = {k: v for k, v in data.items() if k not in COSMOS_SYSTEM_PROPERTIES}
        etag = body.pop("_etag", None)
        doc = cls(**body)
        doc.etag = etag
        return doc

    @field_serializer("created_at", "updated_at", "threshold_reached_at", when_used="json")
    def serialize_sortable_datetime(self, value: Optional[datetime]) -> Optional[str]:
        return format_stored_datetime(value) if value is not None else None

    def to_store(self) -> dict[str, Any]:
        """Serialize for storage (JSON-safe, without the ETag)."""
        return self.model_dump(mode="json")

    def refresh_derived(self) -> None:
        """Recompute fields that are pure functions of other fields."""
        self.id = self.barcode
        self.unique_voters = len(self.voter_fingerprints)
        self.total_contributors = len(self.photo_contributors)
        self.funding_progress = calculate_funding_progress(
            self.total_weighted_votes, self.funding_threshold
        )
        self.updated_at = utc_now()

    def has_voter(self, voter_id: Optional[str]) -> bool:
        return bool(voter_id) and voter_id in self.voter_fingerprints

    def has_contributor(self, voter_id: str) -> bool:
        return any(c.voter_id == voter_id for c in self.photo_contributors)

    def scout_number(self, voter_id: str) -> Optional[int]:
        """1-based position of the voter in the voter list."""
        try:
            return self.voter_fingerprints.index(voter_id) + 1
        except ValueError:
            return None

    def add_weight(self, weight: int) -> bool:
        """
        Apply the weight of one vote or bounty event.

        Returns True if this event moved the record from under the funding
        threshold to at-or-over it, which advances collecting_votes to
        threshold_reached. Later events find the total already over the
        threshold, so the transition cannot fire twice.
        """
        if weight < 0:
            raise ValueError("Vote weight cannot be negative")
        old_total = self.total_weighted_votes
        self.total_weighted_votes = old_total + weight
        crossed = old_total < self.funding_threshold <= self.total_weighted_votes
        if crossed and self.status == ProductVoteStatus.COLLECTING_VOTES:
            self.set_status(ProductVoteStatus.THRESHOLD_REACHED)
            return True
        return False

    def set_status(self, new_status: ProductVoteStatus, notes: Optional[str] = None) -> None:
        """Move to a new status and record it in the history."""
        now = utc_now()
        self.status = new_status
        self.status_history.append(StatusHistoryEntry(status=new_status, changed_at=now, notes=notes))
        if new_status == ProductVoteStatus.THRESHOLD_REACHED and self.threshold_reached_at is None:
            self.threshold_reached_at = now
