"""
Listing Reels service configuration.
"""
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

# Service settings
SERVICE_NAME = "listing-reels"
SERVICE_DISPLAY_NAME = "PeerMetals Video Reels"
SERVICE_VERSION = "1.0.0"
SERVICE_PORT = int(os.getenv("PORT", 6010))

# Paths
BASE_DIR = Path(__file__).parent.parent

# Composition defaults (mirrors the ListingReel registration in the Remotion project)
DEFAULT_COMPOSITION_ID = "ListingReel"
DEFAULT_FPS = 30
DEFAULT_DURATION_FRAMES = 780
DEFAULT_WIDTH = 1080
DEFAULT_HEIGHT = 1920

# Hosting platform ceiling for one job is 15 minutes; leave headroom for upload
DEFAULT_RENDER_TIMEOUT = 840


def _env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable among names."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


class Settings(BaseModel):
    """Runtime configuration, read once from the environment."""

    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_timeout: float = 30.0

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    description_timeout: float = 20.0

    app_url: Optional[str] = None

    remotion_root: str = str(BASE_DIR / "remotion")
    remotion_entry: str = "src/index.js"
    composition_id: str = DEFAULT_COMPOSITION_ID
    render_concurrency: str = "50%"
    render_crf: int = 28
    render_timeout: float = DEFAULT_RENDER_TIMEOUT
    output_dir: str = "/tmp/listing-reels"

    storage_bucket: str = "listings"
    storage_prefix: str = "video-reels"

    environment: str = "development"
    log_level: str = "INFO"

    @property
    def supabase_key(self) -> Optional[str]:
        """Privileged key when available, anonymous key otherwise."""
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            supabase_url=_env("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
            supabase_anon_key=_env("SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"),
            supabase_service_role_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
            supabase_timeout=float(_env("SUPABASE_TIMEOUT", default="30")),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model=_env("OPENAI_MODEL", default="gpt-4o-mini"),
            description_timeout=float(_env("DESCRIPTION_TIMEOUT", default="20")),
            app_url=_env("APP_URL", "NEXT_PUBLIC_APP_URL"),
            remotion_root=_env("REMOTION_ROOT", default=str(BASE_DIR / "remotion")),
            remotion_entry=_env("REMOTION_ENTRY", default="src/index.js"),
            composition_id=_env("COMPOSITION_ID", default=DEFAULT_COMPOSITION_ID),
            render_concurrency=_env("RENDER_CONCURRENCY", default="50%"),
            render_crf=int(_env("RENDER_CRF", default="28")),
            render_timeout=float(_env("RENDER_TIMEOUT", default=str(DEFAULT_RENDER_TIMEOUT))),
            output_dir=_env("OUTPUT_DIR", default="/tmp/listing-reels"),
            storage_bucket=_env("STORAGE_BUCKET", default="listings"),
            storage_prefix=_env("STORAGE_PREFIX", default="video-reels"),
            environment=_env("ENVIRONMENT", "FLASK_ENV", default="development"),
            log_level=_env("LOG_LEVEL", default="INFO"),
        )
