"""
HTML/XSS sanitization for text that arrives from third-party news APIs.

Provider payloads are untrusted: titles and descriptions are reduced to
plain text, article bodies keep a small whitelist of formatting tags.
"""
import re

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_IFRAME_RE = re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE)
_OBJECT_RE = re.compile(r"<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>", re.IGNORECASE)
_EMBED_RE = re.compile(r"<embed\b[^<]*(?:(?!</embed>)<[^<]*)*</embed>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_QUOTED_HANDLER_RE = re.compile(r"\s*on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_BARE_HANDLER_RE = re.compile(r"\s*on\w+\s*=\s*[^\s>]*", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_ANY_TAG_RE = re.compile(r"</?([a-z][a-z0-9]*)\b[^>]*>", re.IGNORECASE)
_ANCHOR_RE = re.compile(r"<a\s+[^>]*href\s*=\s*[\"']([^\"']*)[\"'][^>]*>", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")

ALLOWED_TAGS = {
    "p", "br", "strong", "b", "em", "i", "ul", "ol", "li", "a",
    "h1", "h2", "h3", "blockquote",
}

_ENTITIES = [
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#x27;", "'"),
    ("&#39;", "'"),
    ("&#x2F;", "/"),
]


def sanitize_html(html: str) -> str:
    """Remove scripts, frames, embeds, styles, event handlers and JS URLs."""
    if not html or not isinstance(html, str):
        return ""

    cleaned = _SCRIPT_RE.sub("", html)
    cleaned = _QUOTED_HANDLER_RE.sub("", cleaned)
    cleaned = _BARE_HANDLER_RE.sub("", cleaned)
    cleaned = re.sub(r"javascript:", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"data:text/html", "", cleaned, flags=re.IGNORECASE)
    cleaned = _IFRAME_RE.sub("", cleaned)
    cleaned = _OBJECT_RE.sub("", cleaned)
    cleaned = _EMBED_RE.sub("", cleaned)
    cleaned = _STYLE_RE.sub("", cleaned)
    return cleaned.strip()


def sanitize_text(text: str) -> str:
    """Escape HTML entities in plain text."""
    if not text or not isinstance(text, str):
        return ""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
        .replace("/", "&#x2F;")
        .strip()
    )


def strip_html(html: str) -> str:
    """Strip every tag, decode common entities, collapse whitespace."""
    if not html or not isinstance(html, str):
        return ""

    text = _TAG_RE.sub(" ", html)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return re.sub(r"\s+", " ", text).strip()


def sanitize_article_content(content: str) -> str:
    """Article body: dangerous markup removed, only formatting tags kept."""
    if not content or not isinstance(content, str):
        return ""

    cleaned = sanitize_html(content)

    def _keep_allowed(match: re.Match) -> str:
        return match.group(0) if match.group(1).lower() in ALLOWED_TAGS else ""

    cleaned = _ANY_TAG_RE.sub(_keep_allowed, cleaned)

    def _safe_anchor(match: re.Match) -> str:
        href = match.group(1)
        if re.match(r"^https?://", href, re.IGNORECASE):
            return f'<a href="{href}" target="_blank" rel="noopener noreferrer">'
        return "<a>"

    cleaned = _ANCHOR_RE.sub(_safe_anchor, cleaned)
    return cleaned.strip()


def sanitize_user_input(value: str, max_length: int = 10000) -> str:
    """Strict plain text: no HTML, no control characters, length capped."""
    if not value or not isinstance(value, str):
        return ""

    cleaned = strip_html(value)
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]
    cleaned = cleaned.replace("\0", "")
    cleaned = _CONTROL_RE.sub("", cleaned)
    return cleaned.strip()


def capitalize(value: str) -> str:
    if not value or not isinstance(value, str):
        return ""
    return value[0].upper() + value[1:].lower()
