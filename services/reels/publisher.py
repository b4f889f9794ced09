"""
Publish Step
============
Uploads a rendered reel, records its public URL on the listing and removes
the local file.

This is two-phase, not atomic: once the upload succeeds the video exists and
is reachable, so a failed listing update is logged and reported in the
result but never undoes the upload.
"""
import os
import time
from typing import Callable, Optional

from loguru import logger

from .errors import PublishFailure
from .models import PublishResult
from .store import ListingStore


def build_storage_path(listing_id: str, prefix: str = "video-reels", timestamp_ms: Optional[int] = None) -> str:
    """Timestamped key so concurrent renders of one listing never overwrite each other."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{prefix}/listing-{listing_id}-{timestamp_ms}.mp4"


class Publisher:

    def __init__(
        self,
        store: ListingStore,
        prefix: str = "video-reels",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.prefix = prefix
        self.clock = clock

    def publish(self, local_path: str, listing_id: str, update_listing: bool = True) -> PublishResult:
        """
        Upload local_path for listing_id and return its public URL.

        With update_listing False the listing's video_url is left alone and
        the result reports listing_updated=False.

        Raises:
            PublishFailure: If the file cannot be read or uploaded
        """
        try:
            storage_path = build_storage_path(
                listing_id, self.prefix, int(self.clock() * 1000)
            )

            try:
                with open(local_path, "rb") as f:
                    data = f.read()
            except OSError as e:
                raise PublishFailure("read", e) from e

            logger.info(f"Uploading {len(data) / 1024 / 1024:.2f} MB to {storage_path}")
            try:
                self.store.upload_video(storage_path, data)
            except Exception as e:
                raise PublishFailure("upload", e) from e

            video_url = self.store.public_url(storage_path)
            logger.info(f"Video uploaded: {video_url}")

            listing_updated = False
            if not update_listing:
                logger.info(f"No stored listing for {listing_id}, skipping video_url update")
            else:
                try:
                    self.store.set_video_url(listing_id, video_url)
                    listing_updated = True
                except Exception as e:
                    logger.error(f"Failed to update listing {listing_id} with video URL: {e}")

            return PublishResult(
                listing_id=listing_id,
                video_url=video_url,
                storage_path=storage_path,
                listing_updated=listing_updated,
            )
        finally:
            self._cleanup(local_path)

    @staticmethod
    def _cleanup(local_path: str) -> None:
        try:
            os.remove(local_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temp file {local_path}: {e}")
