"""
Shared fixtures: in-memory store, fake renderer, fake OpenAI client.
"""
import os
import sys
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import Settings
from services.reels.description import DescriptionGenerator
from services.reels.errors import RenderFailure, StoreError
from services.reels.models import Listing, SellerProfile
from services.reels.pipeline import ReelPipeline
from services.reels.publisher import Publisher
from services.reels.renderer import VideoRenderer
from services.reels.store import ListingStore


class FakeStore(ListingStore):
    """In-memory listings, profiles and bucket."""

    def __init__(self, listings=None, profiles=None):
        self.listings = dict(listings or {})
        self.profiles = dict(profiles or {})
        self.objects = {}
        self.calls = []
        self.fail_update = False
        self.fail_upload = False
        self.fail_profile = False

    def get_listing(self, listing_id):
        self.calls.append(("get_listing", listing_id))
        row = self.listings.get(listing_id)
        return Listing.model_validate(row) if row else None

    def get_profile(self, user_id):
        self.calls.append(("get_profile", user_id))
        if self.fail_profile:
            raise StoreError("profiles unavailable")
        row = self.profiles.get(user_id)
        return SellerProfile.model_validate(row) if row else None

    def set_video_url(self, listing_id, video_url):
        self.calls.append(("set_video_url", listing_id))
        if self.fail_update:
            raise StoreError("update rejected")
        self.listings.setdefault(listing_id, {"id": listing_id})["video_url"] = video_url

    def upload_video(self, path, data):
        self.calls.append(("upload_video", path))
        if self.fail_upload:
            raise StoreError("bucket unavailable")
        self.objects[path] = data

    def public_url(self, path):
        return f"https://storage.example.com/listings/{path}"


class FakeRenderer(VideoRenderer):
    """Writes a small file instead of invoking Remotion."""

    def __init__(self, fail_stage=None):
        self.fail_stage = fail_stage
        self.rendered = []

    def get_engine_name(self):
        return "fake"

    def render(self, properties, output_path, on_progress=None):
        if self.fail_stage:
            raise RenderFailure(self.fail_stage, "engine exploded")
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(b"\x00\x00\x00\x18ftypmp42")
        self.rendered.append((properties, output_path))
        if on_progress:
            on_progress(780, 780)
        return output_path


class FakeCompletions:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    def create(self, **kwargs):
        self.prompts.append(kwargs["messages"][-1]["content"])
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.text)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai(text=None, error=None):
    completions = FakeCompletions(text=text, error=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def store():
    return FakeStore(
        listings={
            "listing-1": {
                "id": "listing-1",
                "title": "American Gold Eagle",
                "description": "<p>Brilliant <b>uncirculated</b> coin.</p>",
                "images": ["https://img.example.com/1.jpg", "https://img.example.com/2.jpg"],
                "user_id": "user-1",
                "status": "active",
                "tier1_category": "Gold",
                "condition": "Mint",
                "weight": 1,
                "purity": ".9167",
                "year": 2024,
            },
        },
        profiles={
            "user-1": {"id": "user-1", "username": "goldbug", "full_name": "Paul Bryant"},
        },
    )


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def settings(tmp_path):
    return Settings(output_dir=str(tmp_path / "renders"), environment="test")


@pytest.fixture
def pipeline(store, renderer, settings):
    return ReelPipeline(
        store=store,
        descriptions=DescriptionGenerator(),
        renderer=renderer,
        publisher=Publisher(store, clock=lambda: 1700000000.0),
        output_dir=settings.output_dir,
    )


@pytest.fixture
def app(settings, pipeline):
    from app import create_app
    flask_app = create_app(settings=settings, pipeline=pipeline)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client
