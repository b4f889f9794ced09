"""
Webhook validation for listing insert notifications.

Validation runs before any external call. Events we intentionally ignore
raise WebhookSkipped; events missing required data raise InvalidWebhook.
"""
from typing import Any

from loguru import logger
from pydantic import ValidationError

from .errors import InvalidWebhook, WebhookSkipped
from .models import WebhookEvent
from .store import LISTINGS_TABLE

ACTIVE_STATUS = "active"
INSERT_EVENT = "insert"
REQUIRED_RECORD_FIELDS = (
    ("id", "Missing listing ID"),
    ("title", "Missing listing title"),
    ("user_id", "Missing user ID"),
)


def validate_webhook_event(body: Any) -> WebhookEvent:
    """
    Check a database webhook envelope.

    Returns:
        The parsed event for an active listing insert

    Raises:
        WebhookSkipped: wrong event type, wrong table, or inactive listing
        InvalidWebhook: missing record or required record fields
    """
    if not isinstance(body, dict):
        raise InvalidWebhook("Webhook payload must be a JSON object")

    event_type = body.get("type")
    if not isinstance(event_type, str) or event_type.lower() != INSERT_EVENT:
        raise WebhookSkipped("Invalid webhook type - only INSERT events are supported")

    if body.get("table") != LISTINGS_TABLE:
        raise WebhookSkipped("Invalid table - only listings table is supported")

    record = body.get("record")
    if not isinstance(record, dict) or not record:
        raise InvalidWebhook("Missing record data in webhook payload")

    status = record.get("status")
    if status != ACTIVE_STATUS:
        raise WebhookSkipped(f"Listing status '{status}' not active - skipping video generation")

    for field, message in REQUIRED_RECORD_FIELDS:
        if not record.get(field):
            logger.warning(f"Webhook payload validation failed: {message}")
            raise InvalidWebhook(message)

    try:
        return WebhookEvent.model_validate(body)
    except ValidationError as e:
        raise InvalidWebhook(f"Malformed webhook envelope: {e.error_count()} invalid field(s)") from e
