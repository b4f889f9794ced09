"""
Description Generator
=====================
Short promotional copy for listing reels.

Two forms are produced:
    - short: 1-2 sentences for the showcase scene (asked for <=120 chars,
      hard cap 150)
    - detailed: one punchy sentence for the call-to-action scene (<=80 chars)

When OpenAI is not configured, or the call fails for any reason, a
deterministic description is composed from the listing's specifications.
Neither entry point raises.
"""
from typing import Any, Optional

from loguru import logger
from openai import OpenAI

from .models import Listing
from .text_utils import strip_html, strip_wrapping_quotes, truncate_with_ellipsis

SHORT_PROMPT_CHARS = 120
SHORT_MAX_CHARS = 150
FALLBACK_MAX_CHARS = 120
DETAILED_MAX_CHARS = 80

DEFAULT_CATEGORY = "precious metal"

SHORT_PROMPT = """You are writing a captivating description for a short video reel showcasing a precious metal product.

{context}

Create a short, engaging description (1-2 sentences, max {max_chars} characters) that:
- Highlights the most exciting or valuable aspects of this item
- Uses descriptive, evocative language
- Appeals to collectors, investors, or precious metal enthusiasts
- Sounds professional but exciting
- NO emojis, hashtags, or promotional language like "Shop Now"
- Focus on the item's quality, rarity, history, or investment value

Generate ONLY the description text, nothing else."""

DETAILED_PROMPT = """Write a compelling single sentence (max {max_chars} characters) for a video showcasing this precious metal product:

{context}

The sentence should:
- Be short and punchy
- Highlight value or appeal
- Sound premium/luxury
- NO emojis or hashtags
- Make viewers want to learn more

Generate ONLY the sentence, nothing else."""


def build_context(listing: Listing) -> str:
    """Context block describing the listing for the model."""
    plain = strip_html(listing.description)
    lines = [
        f"Product Title: {listing.title or 'Untitled'}",
        f"Category: {listing.category or 'Precious Metal'}",
        f"Condition: {listing.condition or 'N/A'}",
        f"Weight: {listing.weight if listing.weight is not None else 'N/A'}",
        f"Purity: {listing.purity or 'N/A'}",
        f"Year: {listing.year or 'N/A'}",
        f"Original Description: {plain or 'No description provided'}",
    ]
    return "\n".join(lines)


def fallback_description(listing: Listing) -> str:
    """Compose the short description from specifications alone."""
    category = (listing.category or DEFAULT_CATEGORY).lower()
    condition = listing.condition
    purity = listing.purity
    year = listing.year

    def tail(default: str) -> str:
        return f"{condition} condition." if condition else default

    if purity and year:
        text = f"{purity} purity {category} from {year}. {tail('Exceptional quality.')}"
    elif purity:
        text = f"Premium {purity} purity {category}. {tail('Investment grade.')}"
    elif year:
        text = f"Collectible {category} from {year}. {tail('Excellent specimen.')}"
    else:
        text = f"Beautiful {category} piece. {tail('Quality guaranteed.')}"

    return truncate_with_ellipsis(text, FALLBACK_MAX_CHARS)


def fallback_detailed_description(listing: Listing) -> str:
    category = (listing.category or DEFAULT_CATEGORY).lower()
    return truncate_with_ellipsis(
        f"Discover this exceptional {category} piece.", DETAILED_MAX_CHARS
    )


class DescriptionGenerator:
    """
    Generates reel descriptions with OpenAI, falling back to templates.

    Usage:
        generator = DescriptionGenerator(api_key=os.getenv("OPENAI_API_KEY"))
        text = generator.generate(listing)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        timeout: float = 20.0,
        client: Optional[Any] = None,
    ):
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        else:
            self.client = None
            logger.warning("OpenAI API key not configured, descriptions will use fallback text")

    @property
    def ai_enabled(self) -> bool:
        return self.client is not None

    def _complete(self, prompt: str, max_tokens: int) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.7,
            max_tokens=max_tokens,
        )
        content = response.choices[0].message.content
        text = (content or "").strip()
        if not text:
            raise ValueError("empty completion")
        return text

    def generate(self, listing: Listing) -> str:
        """Short description for the showcase scene."""
        if not self.ai_enabled:
            logger.warning(f"No AI client, using fallback description for listing {listing.id}")
            return fallback_description(listing)

        prompt = SHORT_PROMPT.format(
            context=build_context(listing), max_chars=SHORT_PROMPT_CHARS
        )
        try:
            text = self._complete(prompt, max_tokens=120)
        except Exception as e:
            logger.warning(f"AI description failed for listing {listing.id}, using fallback: {e}")
            return fallback_description(listing)

        text = truncate_with_ellipsis(text, SHORT_MAX_CHARS)
        logger.info(f"AI-generated video description: {text}")
        return text

    def generate_detailed(self, listing: Listing) -> str:
        """Single punchy sentence for the call-to-action scene."""
        if not self.ai_enabled:
            return fallback_detailed_description(listing)

        prompt = DETAILED_PROMPT.format(
            context=build_context(listing), max_chars=DETAILED_MAX_CHARS
        )
        try:
            text = self._complete(prompt, max_tokens=60)
        except Exception as e:
            logger.warning(f"AI detailed description failed for listing {listing.id}, using fallback: {e}")
            return fallback_detailed_description(listing)

        text = strip_wrapping_quotes(text).strip()
        if not text:
            return fallback_detailed_description(listing)
        text = truncate_with_ellipsis(text, DETAILED_MAX_CHARS)
        logger.info(f"AI-generated detailed description: {text}")
        return text
