"""
Video Input Assembler
=====================
Maps a listing and its seller onto the ListingReel composition props.
"""
from typing import Optional

from .models import (
    DEFAULT_SELLER_NAME,
    Listing,
    SellerProfile,
    VideoInputProperties,
    VideoSpecifications,
)
from .text_utils import format_weight

LOGO_PATH = "/peermetals.png"
FALLBACK_LOGO_URL = "https://peermetals.com/peermetals.png"
DEFAULT_TITLE = "New Listing"


def resolve_logo_url(app_url: Optional[str] = None) -> str:
    if app_url:
        return f"{app_url.rstrip('/')}{LOGO_PATH}"
    return FALLBACK_LOGO_URL


def resolve_seller_name(seller: Optional[SellerProfile]) -> str:
    if seller is None:
        return DEFAULT_SELLER_NAME
    return seller.full_name or seller.username or DEFAULT_SELLER_NAME


def assemble_video_input(
    listing: Listing,
    seller: Optional[SellerProfile],
    description: str,
    app_url: Optional[str] = None,
) -> VideoInputProperties:
    """
    Build composition props. Missing optional fields are left unset so the
    template can skip them.
    """
    specifications = VideoSpecifications(
        category=listing.category,
        condition=listing.condition or None,
        weight=format_weight(listing.weight),
        purity=listing.purity,
        year=listing.year,
    )

    return VideoInputProperties(
        listing_title=listing.title or DEFAULT_TITLE,
        listing_description=description or "",
        images=list(listing.images),
        specifications=specifications,
        seller_name=resolve_seller_name(seller),
        logo_url=resolve_logo_url(app_url),
    )
