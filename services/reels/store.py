"""
Listing store interface and its Supabase implementation.
"""
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from shared.supabase_client import SupabaseClient, SupabaseError

from .errors import StoreError
from .models import Listing, SellerProfile

LISTINGS_TABLE = "listings"
PROFILES_TABLE = "profiles"
PROFILE_COLUMNS = "id,username,full_name,avatar_url,reputation,is_verified"


class ListingStore(ABC):
    """
    Reads listings and profiles, stores rendered videos.

    Implementations raise StoreError when the backing service fails.
    """

    @abstractmethod
    def get_listing(self, listing_id: str) -> Optional[Listing]:
        """Return the listing, or None when no row exists."""

    @abstractmethod
    def get_profile(self, user_id: str) -> Optional[SellerProfile]:
        """Return the seller profile, or None when no row exists."""

    @abstractmethod
    def set_video_url(self, listing_id: str, video_url: str) -> None:
        """Write the listing's video_url field."""

    @abstractmethod
    def upload_video(self, path: str, data: bytes) -> None:
        """Upload an MP4 under path."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL of an uploaded object."""


class SupabaseListingStore(ListingStore):
    """ListingStore backed by Supabase tables and a storage bucket."""

    def __init__(self, client: SupabaseClient, bucket: str = "listings"):
        self.client = client
        self.bucket = bucket

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        try:
            row = self.client.select_one(LISTINGS_TABLE, {"id": listing_id})
        except SupabaseError as e:
            raise StoreError(str(e), status_code=e.status_code) from e
        if not row:
            return None
        try:
            return Listing.model_validate(row)
        except ValidationError as e:
            raise StoreError(f"Malformed listing row {listing_id}: {e}") from e

    def get_profile(self, user_id: str) -> Optional[SellerProfile]:
        try:
            row = self.client.select_one(PROFILES_TABLE, {"id": user_id}, columns=PROFILE_COLUMNS)
        except SupabaseError as e:
            raise StoreError(str(e), status_code=e.status_code) from e
        if not row:
            return None
        try:
            return SellerProfile.model_validate(row)
        except ValidationError as e:
            raise StoreError(f"Malformed profile row {user_id}: {e}") from e

    def set_video_url(self, listing_id: str, video_url: str) -> None:
        try:
            self.client.update(LISTINGS_TABLE, {"id": listing_id}, {"video_url": video_url})
        except SupabaseError as e:
            raise StoreError(str(e), status_code=e.status_code) from e

    def upload_video(self, path: str, data: bytes) -> None:
        try:
            self.client.upload(
                self.bucket,
                path,
                data,
                content_type="video/mp4",
                cache_control="3600",
            )
        except SupabaseError as e:
            raise StoreError(str(e), status_code=e.status_code) from e

    def public_url(self, path: str) -> str:
        return self.client.get_public_url(self.bucket, path)
