"""
Reel Pipeline
=============
End-to-end orchestration for listing reels.

Synchronous render (HTTP):
    1. Resolve listing (inline payload or store lookup)
    2. Resolve seller (store lookup, default profile on failure)
    3. Generate description
    4. Assemble composition props
    5. Render
    6. Publish (upload, public URL, best-effort listing update, cleanup)

Webhook:
    Steps 1-4 only. The job is returned in the PREPARED state; rendering is
    not triggered from the webhook.
"""

import os
import time
import uuid
from typing import Any, Dict, Optional, Union

from loguru import logger
from pydantic import ValidationError

from config.settings import Settings

from .assembler import assemble_video_input
from .description import DescriptionGenerator
from .errors import (
    InvalidListingData,
    InvalidWebhook,
    ListingNotFound,
    MissingListingInput,
    StoreError,
)
from .models import (
    DEFAULT_SELLER_PROFILE,
    JobState,
    Listing,
    PreparedJob,
    RenderOutcome,
    RenderSettings,
    SellerProfile,
    VideoInputProperties,
    WebhookEvent,
)
from .publisher import Publisher, build_storage_path
from .renderer import RemotionRenderer, VideoRenderer
from .store import ListingStore
from .webhook import validate_webhook_event


def _invalid_fields(error: ValidationError) -> str:
    fields = [".".join(str(part) for part in err["loc"]) for err in error.errors()]
    return ", ".join(f for f in fields if f) or "payload"


class ReelPipeline:
    """
    Runs one listing through description, assembly, render and publish.

    All collaborators are injected so tests can substitute fakes.

    Usage:
        pipeline = ReelPipeline.from_settings(Settings.from_env(), store)
        outcome = pipeline.render(listing_id="abc")
    """

    def __init__(
        self,
        store: ListingStore,
        descriptions: DescriptionGenerator,
        renderer: VideoRenderer,
        publisher: Optional[Publisher] = None,
        app_url: Optional[str] = None,
        output_dir: str = "/tmp/listing-reels",
        storage_prefix: str = "video-reels",
    ):
        self.store = store
        self.descriptions = descriptions
        self.renderer = renderer
        self.publisher = publisher or Publisher(store, prefix=storage_prefix)
        self.app_url = app_url
        self.output_dir = output_dir
        self.storage_prefix = storage_prefix

    @classmethod
    def from_settings(cls, settings: Settings, store: ListingStore) -> "ReelPipeline":
        descriptions = DescriptionGenerator(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.description_timeout,
        )
        renderer = RemotionRenderer(
            project_dir=settings.remotion_root,
            entry_point=settings.remotion_entry,
            composition_id=settings.composition_id,
            settings=RenderSettings(
                crf=settings.render_crf,
                concurrency=settings.render_concurrency,
                timeout_seconds=settings.render_timeout,
            ),
        )
        return cls(
            store=store,
            descriptions=descriptions,
            renderer=renderer,
            publisher=Publisher(store, prefix=settings.storage_prefix),
            app_url=settings.app_url,
            output_dir=settings.output_dir,
            storage_prefix=settings.storage_prefix,
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def resolve_listing(
        self,
        listing_id: Optional[str] = None,
        listing_data: Optional[Dict[str, Any]] = None,
    ) -> Listing:
        if listing_data:
            if not isinstance(listing_data, dict):
                raise InvalidListingData("listingData must be a JSON object")
            try:
                listing = Listing.model_validate(listing_data)
            except ValidationError as e:
                raise InvalidListingData(f"Invalid listingData fields: {_invalid_fields(e)}") from e
            if listing.id is None and listing_id:
                listing.id = str(listing_id)
            return listing

        if not listing_id:
            raise MissingListingInput("Missing required parameter: listingId or listingData")

        logger.info(f"Fetching listing data for ID: {listing_id}")
        try:
            listing = self.store.get_listing(str(listing_id))
        except StoreError as e:
            raise ListingNotFound(str(listing_id), e.message) from e
        if listing is None:
            raise ListingNotFound(str(listing_id), "no such listing")
        return listing

    def resolve_seller(self, user_id: Optional[str]) -> SellerProfile:
        """Seller profile, or the default profile when it cannot be read."""
        if not user_id:
            logger.info("Listing has no owner, using fallback profile")
            return DEFAULT_SELLER_PROFILE

        try:
            profile = self.store.get_profile(user_id)
        except StoreError as e:
            logger.warning(f"Profile lookup failed for {user_id}: {e}. Using fallback profile.")
            return DEFAULT_SELLER_PROFILE

        if profile is None:
            logger.info(f"Profile not found for {user_id}. Using fallback profile.")
            return DEFAULT_SELLER_PROFILE
        return profile

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def build_properties(self, listing: Listing, seller: SellerProfile, detailed: bool = True) -> VideoInputProperties:
        logger.info("Generating AI description...")
        if detailed:
            description = self.descriptions.generate_detailed(listing)
        else:
            description = self.descriptions.generate(listing)
        return assemble_video_input(listing, seller, description, app_url=self.app_url)

    def local_output_path(self, reel_id: str) -> str:
        """Per-job local file; unique even for same-millisecond renders of one listing."""
        return os.path.join(
            self.output_dir,
            f"listing-{reel_id}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.mp4",
        )

    def render(
        self,
        listing_id: Optional[str] = None,
        listing_data: Optional[Dict[str, Any]] = None,
        started_at: Optional[float] = None,
    ) -> RenderOutcome:
        """
        Render and publish a reel for one listing.

        Raises:
            ReelError: with kind CLIENT for missing input, SERVER otherwise
        """
        started_at = started_at if started_at is not None else time.monotonic()
        if not listing_id and not listing_data:
            raise MissingListingInput("Missing required parameter: listingId or listingData")

        listing = self.resolve_listing(listing_id, listing_data)
        reel_id = listing.id or uuid.uuid4().hex

        logger.info(f"Fetching seller profile for user: {listing.user_id}")
        seller = self.resolve_seller(listing.user_id)

        properties = self.build_properties(listing, seller)

        output_path = self.local_output_path(reel_id)
        self.renderer.render(properties, output_path)

        # inline listings without an id have no row to point back to
        published = self.publisher.publish(
            output_path, reel_id, update_listing=listing.id is not None
        )
        elapsed = time.monotonic() - started_at
        logger.info(f"Complete! Total time: {elapsed:.2f}s")

        return RenderOutcome(
            listing_id=reel_id,
            video_url=published.video_url,
            elapsed_seconds=elapsed,
            listing_updated=published.listing_updated,
            state=JobState.PUBLISHED,
            properties=properties,
        )

    def prepare_from_webhook(self, event: Union[WebhookEvent, Dict[str, Any]]) -> PreparedJob:
        """
        Build the reel props for a listing insert notification.

        Raw payloads are validated first. The returned job is PREPARED:
        nothing is rendered or uploaded.
        """
        if not isinstance(event, WebhookEvent):
            event = validate_webhook_event(event)
        try:
            listing = Listing.model_validate(event.record)
        except ValidationError as e:
            raise InvalidWebhook(f"Invalid listing record fields: {_invalid_fields(e)}") from e

        seller = self.resolve_seller(listing.user_id)
        logger.info(
            f"Generating video reel for listing: {listing.title} "
            f"by {seller.full_name or seller.username}"
        )

        properties = self.build_properties(listing, seller, detailed=False)
        video_path = build_storage_path(listing.id, self.storage_prefix)

        logger.info(
            f"Video data prepared for listing {listing.id}: "
            f"{len(properties.images)} images, seller {properties.seller_name}"
        )
        logger.info(f"Video generation queued for listing {listing.id} at {video_path}")

        return PreparedJob(
            listing_id=listing.id,
            video_path=video_path,
            properties=properties,
        )


if __name__ == "__main__":
    # Local render check: renders a sample listing without touching storage.
    import sys

    settings = Settings.from_env()
    sample = Listing(
        id="local-test",
        title="Lot of 4 Republic De Cuba Cinco Centavos Libertad",
        description="As pictured.",
        tier1_category="Currency",
        condition="Numismatic",
        weight=0.5,
    )
    generator = DescriptionGenerator(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.description_timeout,
    )
    props = assemble_video_input(
        sample, DEFAULT_SELLER_PROFILE, generator.generate_detailed(sample), settings.app_url
    )
    renderer = RemotionRenderer(
        project_dir=settings.remotion_root,
        entry_point=settings.remotion_entry,
        composition_id=settings.composition_id,
        settings=RenderSettings(crf=settings.render_crf, concurrency=settings.render_concurrency),
    )
    out = os.path.join(settings.output_dir, f"test-video-{int(time.time() * 1000)}.mp4")
    try:
        print(f"Rendered: {renderer.render(props, out)}")
    except Exception as e:
        print(f"Render failed: {e}")
        sys.exit(1)
