"""
Listing Reels Service - Promotional video reels for marketplace listings.
Port: 6010
"""
import os
import sys
import time
import traceback
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, current_app, jsonify, request
from loguru import logger

# Add services to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config.settings import (
    SERVICE_DISPLAY_NAME,
    SERVICE_NAME,
    SERVICE_PORT,
    SERVICE_VERSION,
    Settings,
)
from services.reels import ErrorKind, ReelError, ReelPipeline, SupabaseListingStore
from services.reels.webhook import validate_webhook_event
from shared.supabase_client import SupabaseClient


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level.upper())


def build_pipeline(settings: Settings) -> ReelPipeline:
    """Wire the production pipeline from configuration."""
    client = SupabaseClient(
        settings.supabase_url,
        settings.supabase_key,
        timeout=settings.supabase_timeout,
    )
    store = SupabaseListingStore(client, bucket=settings.storage_bucket)
    return ReelPipeline.from_settings(settings, store)


def get_pipeline() -> ReelPipeline:
    """Pipeline for the current app, built on first use."""
    state = current_app.extensions["reels"]
    if state["pipeline"] is None:
        state["pipeline"] = build_pipeline(state["settings"])
    return state["pipeline"]


def get_settings() -> Settings:
    return current_app.extensions["reels"]["settings"]


def _elapsed(started: float) -> str:
    return f"{time.monotonic() - started:.2f}"


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(settings: Optional[Settings] = None, pipeline: Optional[ReelPipeline] = None) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = Flask(__name__)
    app.extensions["reels"] = {"settings": settings, "pipeline": pipeline}

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.route("/health", methods=["GET"])
    @app.route("/api/health", methods=["GET"])
    def health():
        """Health check endpoint. Reports which secrets are configured, never their values."""
        cfg = get_settings()
        return jsonify({
            "status": "ok",
            "service": SERVICE_DISPLAY_NAME,
            "name": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "env": {
                "hasSupabaseUrl": bool(cfg.supabase_url),
                "hasSupabaseKey": bool(cfg.supabase_anon_key),
                "hasServiceRoleKey": bool(cfg.supabase_service_role_key),
                "hasOpenAIKey": bool(cfg.openai_api_key),
            },
        })

    @app.route("/api/render-video", methods=["POST"])
    def render_video():
        """Render a reel for a listing and publish it."""
        started = time.monotonic()
        logger.info("Video render request received")

        data = _json_body()
        listing_id = data.get("listingId")
        listing_data = data.get("listingData")

        if not listing_id and not listing_data:
            return jsonify({
                "error": "Missing required parameter: listingId or listingData"
            }), 400

        try:
            outcome = get_pipeline().render(
                listing_id=listing_id,
                listing_data=listing_data,
                started_at=started,
            )
        except Exception as e:
            logger.error(f"Video render failed: {e}")
            status = e.status_code if isinstance(e, ReelError) else 500
            message = e.message if isinstance(e, ReelError) else str(e)
            body = {
                "success": False,
                "error": message,
                "renderTime": _elapsed(started),
            }
            if not get_settings().is_production:
                body["stack"] = traceback.format_exc()
            return jsonify(body), status

        return jsonify({
            "success": True,
            "videoUrl": outcome.video_url,
            "listingId": outcome.listing_id,
            "renderTime": f"{outcome.elapsed_seconds:.2f}",
            "listingUpdated": outcome.listing_updated,
            "message": "Video rendered and uploaded successfully",
        })

    @app.route("/api/webhooks/video-reel", methods=["POST"])
    def video_reel_webhook():
        """Prepare a reel when a listing is inserted."""
        body = request.get_json(silent=True)
        logger.info("Video reel webhook received")

        try:
            event = validate_webhook_event(body)
            job = get_pipeline().prepare_from_webhook(event)
        except ReelError as e:
            if e.kind == ErrorKind.SKIP:
                logger.info(f"Skipping webhook: {e.message}")
                return jsonify({
                    "success": True,
                    "message": "Webhook skipped",
                    "reason": e.message,
                })
            logger.error(f"Video reel webhook processing failed: {e.message}")
            return jsonify({"success": False, "error": e.message}), e.status_code
        except Exception as e:
            logger.exception(f"Video reel webhook processing failed: {e}")
            return jsonify({"success": False, "error": str(e)}), 500

        return jsonify({
            "success": True,
            "message": "Video reel generation queued successfully",
            "listingId": job.listing_id,
            "videoPath": job.video_path,
            "videoData": job.properties.to_props(),
            "state": job.state.value,
        })

    return app


app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=SERVICE_PORT)
