"""
Reel pipeline errors.

Every error carries an explicit ``ErrorKind`` so the HTTP layer can map it to
a status code without inspecting the message text.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """How an entry point should surface a failure."""
    SKIP = "skip"      # intentionally not applicable, reported as success
    CLIENT = "client"  # caller sent something unusable
    SERVER = "server"  # downstream or internal failure


class ReelError(Exception):
    """Base class for pipeline errors."""

    kind: ErrorKind = ErrorKind.SERVER

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def status_code(self) -> int:
        if self.kind == ErrorKind.SKIP:
            return 200
        if self.kind == ErrorKind.CLIENT:
            return 400
        return 500


class MissingListingInput(ReelError):
    kind = ErrorKind.CLIENT


class InvalidListingData(ReelError):
    """Inline listing payload has the wrong shape or field types."""
    kind = ErrorKind.CLIENT


class ListingNotFound(ReelError):
    kind = ErrorKind.SERVER

    def __init__(self, listing_id: str, detail: Optional[str] = None):
        message = f"Failed to fetch listing {listing_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.listing_id = listing_id


class WebhookSkipped(ReelError):
    """Event is valid but not something we act on."""
    kind = ErrorKind.SKIP


class InvalidWebhook(ReelError):
    """Event is missing fields we need."""
    kind = ErrorKind.CLIENT


class StoreError(ReelError):
    """Data store or object storage request failed."""
    kind = ErrorKind.SERVER

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.http_status = status_code


class _StageFailure(ReelError):
    kind = ErrorKind.SERVER
    label = "Stage"

    def __init__(self, stage: str, cause: object):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{self.label} failed during {stage}: {cause}")


class RenderFailure(_StageFailure):
    """Rendering engine failed; no usable output was produced."""
    label = "Render"


class PublishFailure(_StageFailure):
    """Upload of a rendered file failed."""
    label = "Publish"
