"""
Listing Reels
=============
Promotional video reels for marketplace listings.

Architecture:
- description: AI copy with deterministic fallback
- assembler: listing + seller -> composition props
- renderer: Remotion CLI orchestration
- publisher: storage upload and listing back-reference
- pipeline: synchronous render and webhook preparation
"""

from .errors import (
    ErrorKind,
    ReelError,
    RenderFailure,
    PublishFailure,
    WebhookSkipped,
    InvalidWebhook,
    InvalidListingData,
)
from .models import (
    Listing,
    SellerProfile,
    VideoInputProperties,
    JobState,
    PreparedJob,
    RenderOutcome,
    DEFAULT_SELLER_PROFILE,
)
from .description import DescriptionGenerator
from .assembler import assemble_video_input
from .renderer import VideoRenderer, RemotionRenderer
from .publisher import Publisher
from .store import ListingStore, SupabaseListingStore
from .pipeline import ReelPipeline

__all__ = [
    "ErrorKind",
    "ReelError",
    "RenderFailure",
    "PublishFailure",
    "WebhookSkipped",
    "InvalidWebhook",
    "InvalidListingData",
    "Listing",
    "SellerProfile",
    "VideoInputProperties",
    "JobState",
    "PreparedJob",
    "RenderOutcome",
    "DEFAULT_SELLER_PROFILE",
    "DescriptionGenerator",
    "assemble_video_input",
    "VideoRenderer",
    "RemotionRenderer",
    "Publisher",
    "ListingStore",
    "SupabaseListingStore",
    "ReelPipeline",
]
