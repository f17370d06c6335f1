"""
Article validation for provider output.

Every article a provider returns passes through here before it is cached
or handed to a caller. Articles missing a title, URL or publish date are
rejected; other missing fields are filled with defaults and noted as
warnings. All text is sanitized since provider payloads are untrusted.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser
from loguru import logger

from config.settings import get_settings
from providers.base import Article, Source
from utils.platform import ensure_utc, now_utc
from utils.sanitizer import capitalize, sanitize_article_content, sanitize_user_input
from utils.url_validator import is_valid_url

REQUIRED_FIELDS = ["title", "url", "published_at"]
OPTIONAL_FIELDS = ["description", "url_to_image", "content", "author", "source", "category"]

TITLE_MAX = 500
DESCRIPTION_MAX = 1000
AUTHOR_MAX = 200
SOURCE_ID_MAX = 100
SOURCE_NAME_MAX = 200
CATEGORY_MAX = 50

_PLACEHOLDER = "https://via.placeholder.com/800x450/{color}/ffffff?text={text}"
DEFAULT_IMAGES = {
    "business": _PLACEHOLDER.format(color="2563eb", text="Business+News"),
    "technology": _PLACEHOLDER.format(color="7c3aed", text="Technology+News"),
    "sports": _PLACEHOLDER.format(color="059669", text="Sports+News"),
    "health": _PLACEHOLDER.format(color="dc2626", text="Health+News"),
    "science": _PLACEHOLDER.format(color="0891b2", text="Science+News"),
    "entertainment": _PLACEHOLDER.format(color="db2777", text="Entertainment+News"),
    "general": _PLACEHOLDER.format(color="64748b", text="News"),
}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    article: Optional[Article] = None


@dataclass
class BatchValidation:
    """Outcome of validating one provider response."""
    valid: List[Article] = field(default_factory=list)
    invalid: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    warnings: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return len(self.valid)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid)


# ============================================
# FIELD HELPERS
# ============================================

def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def is_valid_date(value: Any) -> bool:
    if not value:
        return False
    if isinstance(value, datetime):
        return True
    if not isinstance(value, str):
        return False
    try:
        date_parser.parse(value)
    except (ValueError, OverflowError):
        return False
    return True


def parse_date(value: Any) -> datetime:
    """Parse a provider timestamp to an aware UTC datetime. Unparseable -> now."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(date_parser.parse(value))
    except (ValueError, OverflowError, TypeError):
        return now_utc()


def get_default_image(category: Optional[str]) -> str:
    return DEFAULT_IMAGES.get((category or "").lower(), DEFAULT_IMAGES["general"])


def has_required_fields(raw: Any) -> bool:
    if not isinstance(raw, dict):
        return False
    return all(raw.get(f) not in (None, "") for f in REQUIRED_FIELDS)


def _source_of(raw_source: Any, provider: str, warnings: List[str]) -> Source:
    if isinstance(raw_source, dict):
        source_id = raw_source.get("id") or provider
        name = raw_source.get("name") or capitalize(provider)
    elif isinstance(raw_source, str) and raw_source.strip():
        source_id, name = provider, raw_source
    else:
        source_id, name = provider, capitalize(provider)
        warnings.append("Missing source, using provider as source")

    return Source(
        id=sanitize_user_input(str(source_id), SOURCE_ID_MAX),
        name=sanitize_user_input(str(name), SOURCE_NAME_MAX),
    )


# ============================================
# VALIDATION
# ============================================

def validate_article(raw: Dict[str, Any], provider: str) -> ValidationResult:
    """Validate and normalize one raw article dict from a provider.

    Raises:
        ValueError: if raw is not a dict or provider is blank
    """
    if not isinstance(raw, dict):
        raise ValueError("Article must be a dict")
    if _blank(provider):
        raise ValueError("Provider name is required")

    reject_private = get_settings().production
    errors = []
    warnings: List[str] = []

    if _blank(raw.get("title")):
        errors.append("Missing or empty title")
    if not is_valid_url(raw.get("url"), reject_private=reject_private):
        errors.append("Invalid or missing URL")
    if not is_valid_date(raw.get("published_at")):
        errors.append("Invalid or missing published_at date")

    if errors:
        return ValidationResult(valid=False, errors=errors)

    title = sanitize_user_input(raw["title"], TITLE_MAX)
    published_at = parse_date(raw["published_at"])

    description = raw.get("description")
    if _blank(description):
        description = title
        warnings.append("Missing description, using title as fallback")
    description = sanitize_user_input(description, DESCRIPTION_MAX)

    raw_category = raw.get("category")
    if _blank(raw_category):
        raw_category = "general"
        warnings.append('Missing category, using "general" as fallback')
    category = sanitize_user_input(raw_category.lower(), CATEGORY_MAX)

    image = raw.get("url_to_image")
    if not is_valid_url(image):
        image = get_default_image(category)
        warnings.append("Missing or invalid image URL, using placeholder")

    content = raw.get("content")
    if _blank(content):
        content = description
        warnings.append("Missing content, using description as fallback")
    content = sanitize_article_content(content)

    author = raw.get("author")
    if _blank(author):
        author = "Unknown"
    author = sanitize_user_input(author, AUTHOR_MAX)

    article = Article(
        title=title,
        description=description,
        content=content,
        url=raw["url"].strip(),
        url_to_image=image,
        published_at=published_at,
        source=_source_of(raw.get("source"), provider, warnings),
        author=author,
        category=category,
        provider=provider,
        warnings=list(warnings),
    )
    return ValidationResult(valid=True, warnings=warnings, article=article)


def validate_articles_batch(raws: List[Dict[str, Any]], provider: str) -> BatchValidation:
    """Validate a provider response. One bad article never sinks the batch.

    Raises:
        ValueError: if raws is not a list
    """
    if not isinstance(raws, list):
        raise ValueError("Articles must be a list")

    batch = BatchValidation(total=len(raws))

    for index, raw in enumerate(raws):
        url = raw.get("url") if isinstance(raw, dict) else None
        try:
            result = validate_article(raw, provider)
        except ValueError as e:
            batch.invalid.append({
                "index": index,
                "url": url,
                "errors": [f"Validation exception: {e}"],
            })
            continue

        if result.valid and result.article:
            batch.valid.append(result.article)
            if result.warnings:
                batch.warnings.append({"index": index, "url": url, "warnings": result.warnings})
        else:
            batch.invalid.append({"index": index, "url": url, "errors": result.errors})

    if batch.invalid_count:
        logger.debug(
            f"{provider}: {batch.invalid_count}/{batch.total} articles failed validation"
        )

    return batch
