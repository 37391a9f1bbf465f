"""
Product vote Pydantic schemas.

Request bodies are validated here, at the boundary, so the services only
ever see well-formed commands.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from models.product_vote import ProductVoteStatus, VoteType, is_storable_barcode

MAX_BARCODE_LENGTH = 64
MAX_IDENTITY_LENGTH = 256


def _clean_barcode(v: Any) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError("Barcode is required")
    v = v.strip()
    if len(v) > MAX_BARCODE_LENGTH:
        raise ValueError(f"Barcode must be at most {MAX_BARCODE_LENGTH} characters")
    if not is_storable_barcode(v):
        raise ValueError("Barcode cannot contain /, \\, ? or #")
    return v


def _clean_identity(v: Any) -> Optional[str]:
    if v is None:
        return None
    if isinstance(v, int):
        v = str(v)
    if not isinstance(v, str):
        raise ValueError("Identity must be a string")
    v = v.strip()
    if len(v) > MAX_IDENTITY_LENGTH:
        raise ValueError(f"Identity must be at most {MAX_IDENTITY_LENGTH} characters")
    return v or None


# =============================================================================
# Register vote
# =============================================================================


class ProductInfoHint(BaseModel):
    """Display metadata supplied by the client; only fills fields still unset."""

    name: Optional[str] = Field(None, max_length=500)
    brand: Optional[str] = Field(None, max_length=200)
    image_url: Optional[str] = Field(None, max_length=2000)


class RegisterVoteRequest(BaseModel):
    """Schema for registering a product vote."""

    barcode: str = Field(..., description="Product barcode (UPC/EAN)", examples=["5000328657950"])
    vote_type: VoteType = Field(
        VoteType.SCAN,
        description="search = 1x, scan = 5x, member_scan = 20x",
    )
    voter_identity: Optional[str] = Field(
        None, description="Device fingerprint or user id for unique voter tracking"
    )
    user_id: Optional[str] = Field(None, description="Preferred identity for completion notifications")
    product_info: Optional[ProductInfoHint] = None
    notify_on_complete: bool = False

    @field_validator("barcode", mode="before")
    @classmethod
    def validate_barcode(cls, v: Any) -> str:
        return _clean_barcode(v)

    @field_validator("voter_identity", "user_id", mode="before")
    @classmethod
    def validate_identity(cls, v: Any) -> Optional[str]:
        return _clean_identity(v)

    @property
    def notify_id(self) -> Optional[str]:
        return self.user_id or self.voter_identity


class ProductInfo(BaseModel):
    barcode: str
    name: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None


class RegisterVoteResponse(BaseModel):
    """Response after registering a vote."""

    success: bool = True
    vote_registered: bool = True
    total_votes: int = Field(..., description="Unique voters for this product")
    total_weighted_votes: int
    your_vote_rank: int = Field(..., description="Unique voter count at the time of this vote")
    is_new_voter: bool
    funding_progress: int
    funding_threshold: int
    status: ProductVoteStatus
    threshold_reached: bool = Field(False, description="True only on the vote that crossed the threshold")
    product_info: ProductInfo
    message: str


# =============================================================================
# Status, leaderboard, queue
# =============================================================================


class VoteStatusResponse(BaseModel):
    exists: bool
    barcode: str
    product_name: Optional[str] = None
    brand: Optional[str] = None
    image_url: Optional[str] = None
    total_votes: int = 0
    total_weighted_votes: int = 0
    funding_progress: int = 0
    funding_threshold: Optional[int] = None
    status: Optional[ProductVoteStatus] = None


class LeaderboardEntry(BaseModel):
    rank: int
    barcode: str
    product_name: str
    brand: Optional[str] = None
    image_url: Optional[str] = None
    total_voters: int
    funding_progress: int
    status: ProductVoteStatus


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntry]
    total: int


class QueueFilter(str, Enum):
    MOST_VOTED = "most_voted"
    NEWEST = "newest"
    ALMOST_FUNDED = "almost_funded"


class QueueProduct(BaseModel):
    barcode: str
    product_name: str
    brand: Optional[str] = None
    image_url: Optional[str] = None
    total_voters: int
    total_contributors: int
    total_weighted_votes: int
    funding_progress: int
    funding_threshold: int
    status: ProductVoteStatus
    urgency_flag: str
    created_at: datetime


class QueueResponse(BaseModel):
    products: list[QueueProduct]
    total: int
    page: int
    total_pages: int


# =============================================================================
# Photo contributions
# =============================================================================


class ContributeRequest(BaseModel):
    """Schema for registering a photo contribution to an existing request."""

    barcode: str
    contributor_identity: str = Field(..., description="Device fingerprint or user id of the contributor")
    submission_id: str = Field(..., description="Id of the photo submission")
    user_id: Optional[str] = None

    @field_validator("barcode", mode="before")
    @classmethod
    def validate_barcode(cls, v: Any) -> str:
        return _clean_barcode(v)

    @field_validator("contributor_identity", "submission_id", mode="before")
    @classmethod
    def validate_required_identity(cls, v: Any, info) -> str:
        cleaned = _clean_identity(v)
        if not cleaned:
            raise ValueError(f"{info.field_name} is required")
        return cleaned

    @field_validator("user_id", mode="before")
    @classmethod
    def validate_user_id(cls, v: Any) -> Optional[str]:
        return _clean_identity(v)


class ContributionResponse(BaseModel):
    success: bool
    bounty_awarded: bool
    bonus_weight: int
    new_total_votes: int
    total_contributors: int
    funding_progress: int
    status: ProductVoteStatus
    message: str


# =============================================================================
# My investigations
# =============================================================================


InvestigationStatus = Literal["waiting", "testing", "complete"]


class Investigation(BaseModel):
    barcode: str
    product_name: str
    brand: Optional[str] = None
    image_url: Optional[str] = None
    status: InvestigationStatus
    queue_position: Optional[int] = None
    funding_progress: int
    your_voter_rank: int
    total_voters: int
    is_first_voter: bool
    did_contribute_photos: bool
    is_trending: bool
    velocity_change_24h: int
    linked_product_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MyInvestigationsResponse(BaseModel):
    investigations: list[Investigation]
    total_investigations: int
    results_ready: int


# =============================================================================
# Admin
# =============================================================================


class AdvanceStatusRequest(BaseModel):
    status: ProductVoteStatus
    notes: Optional[str] = Field(None, max_length=1000)
    linked_product_id: Optional[str] = None


class StatusHistoryItem(BaseModel):
    status: ProductVoteStatus
    changed_at: datetime
    notes: Optional[str] = None


class AdvanceStatusResponse(BaseModel):
    barcode: str
    previous_status: ProductVoteStatus
    status: ProductVoteStatus
    threshold_reached_at: Optional[datetime] = None
    status_history: list[StatusHistoryItem]
    notifications_sent: int = 0


class EnrichResult(BaseModel):
    barcode: str
    enriched: bool
    product_name: Optional[str] = None
    brand: Optional[str] = None
    source: Optional[str] = None
    error: Optional[str] = None


class EnrichmentResponse(BaseModel):
    success: bool = True
    message: str
    processed: int
    enriched: int
    remaining: int
    results: list[EnrichResult]
