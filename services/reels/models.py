"""
Listing Reel Models
===================
Data models for listings, seller profiles, composition props and job state.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import (
    DEFAULT_COMPOSITION_ID,
    DEFAULT_DURATION_FRAMES,
    DEFAULT_FPS,
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
)


class JobState(str, Enum):
    """Lifecycle of one reel job."""
    BUNDLING = "bundling"
    COMPOSITION_RESOLVED = "composition_resolved"
    RENDERING = "rendering"
    DONE = "done"
    PUBLISHED = "published"
    PREPARED = "prepared"  # webhook jobs: props built, render not started
    FAILED = "failed"


class Listing(BaseModel):
    """A marketplace listing row. Unknown columns are ignored."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None
    status: Optional[str] = None
    tier1_category: Optional[str] = None
    tier2_category: Optional[str] = None
    condition: Optional[str] = None
    weight: Optional[Union[float, str]] = None
    purity: Optional[str] = None
    year: Optional[str] = None
    video_url: Optional[str] = None

    @field_validator("id", "user_id", "purity", "year", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("images", mode="before")
    @classmethod
    def _images(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value if v]

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            return None
        return value

    @property
    def category(self) -> Optional[str]:
        return self.tier1_category or self.tier2_category

    def specifications(self) -> Dict[str, Any]:
        """Sparse specifications used for prompts and fallback text."""
        return {
            "category": self.category,
            "condition": self.condition,
            "weight": self.weight,
            "purity": self.purity,
            "year": self.year,
        }


class SellerProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    reputation: Optional[float] = 0
    is_verified: Optional[bool] = False

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        return None if value is None else str(value)

    # nullable columns in the profiles table
    @field_validator("reputation", mode="before")
    @classmethod
    def _reputation(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("is_verified", mode="before")
    @classmethod
    def _is_verified(cls, value: Any) -> Any:
        return False if value is None else value


DEFAULT_SELLER_NAME = "PeerMetals Seller"

# Used whenever the owner's profile cannot be read
DEFAULT_SELLER_PROFILE = SellerProfile(
    username="peermetals_seller",
    full_name=DEFAULT_SELLER_NAME,
    avatar_url=None,
    reputation=0,
    is_verified=False,
)


class VideoSpecifications(BaseModel):
    category: Optional[str] = None
    condition: Optional[str] = None
    weight: Optional[str] = None
    purity: Optional[str] = None
    year: Optional[str] = None


class VideoInputProperties(BaseModel):
    """Props consumed by the ListingReel composition."""
    model_config = ConfigDict(populate_by_name=True)

    listing_title: str = Field(alias="listingTitle")
    listing_description: str = Field(alias="listingDescription")
    images: List[str] = Field(default_factory=list)
    specifications: VideoSpecifications = Field(default_factory=VideoSpecifications)
    seller_name: str = Field(alias="sellerName")
    logo_url: str = Field(alias="logoUrl")

    def to_props(self) -> Dict[str, Any]:
        """Wire form: camelCase keys, absent specification fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CompositionInfo(BaseModel):
    """Timeline parameters resolved by the rendering engine."""
    id: str = DEFAULT_COMPOSITION_ID
    duration_in_frames: int = DEFAULT_DURATION_FRAMES
    fps: int = DEFAULT_FPS
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT

    @property
    def duration_seconds(self) -> float:
        return self.duration_in_frames / self.fps if self.fps else 0.0


class RenderSettings(BaseModel):
    """Encoding options handed to the rendering engine."""
    codec: str = "h264"
    crf: int = 28
    pixel_format: str = "yuv420p"
    image_format: str = "jpeg"
    concurrency: str = "50%"
    gl: str = "angle"
    progress_log_interval: int = 60
    timeout_seconds: float = 840


class WebhookEvent(BaseModel):
    """Database change notification envelope."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    table: str
    record: Dict[str, Any]
    db_schema: Optional[str] = Field(default=None, alias="schema")
    old_record: Optional[Dict[str, Any]] = None


class PublishResult(BaseModel):
    listing_id: str
    video_url: str
    storage_path: str
    listing_updated: bool = True


class RenderOutcome(BaseModel):
    """Result of a synchronous render request."""
    listing_id: str
    video_url: str
    elapsed_seconds: float
    listing_updated: bool = True
    state: JobState = JobState.PUBLISHED
    properties: Optional[VideoInputProperties] = None


class PreparedJob(BaseModel):
    """A webhook job whose props are built but which has not been rendered."""
    listing_id: str
    video_path: str
    properties: VideoInputProperties
    state: JobState = JobState.PREPARED
