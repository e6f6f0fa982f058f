"""site_audit.utils: URL helpers shared by the crawler, the link checker and the reports."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Optional, Sequence
from urllib.parse import urljoin, urlparse, urlunparse

from site_audit.logger import logger

__all__: Sequence[str] = (
    "VALID_CATEGORIES",
    "NON_HTML_EXTENSIONS",
    "validate_url",
    "validate_category",
    "resolve_url",
    "normalize_url",
    "is_same_domain",
    "should_exclude_url",
    "has_fragment",
    "is_non_html_link",
    "sanitize_filename",
    "truncate_text",
)

VALID_CATEGORIES: tuple[str, ...] = (
    "Blog",
    "SaaS",
    "eCommerce",
    "Portfolio",
    "Corporate",
    "News",
    "Educational",
    "General",
)

NON_HTML_EXTENSIONS: tuple[str, ...] = (
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".zip", ".rar", ".gz", ".tar", ".7z",
    ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico", ".bmp",
    ".mp4", ".mp3", ".avi", ".mov", ".wav",
    ".css", ".js", ".json", ".xml",
    ".woff", ".woff2", ".ttf", ".eot",
)

_SKIPPED_SCHEMES = ("mailto:", "javascript:", "tel:", "data:")


def validate_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_category(category: str) -> bool:
    return category in VALID_CATEGORIES


def resolve_url(href: str, base_url: str) -> Optional[str]:
    """Resolve *href* against *base_url*; ``None`` when it is not an http(s) target."""
    raw = (href or "").strip()
    if not raw or raw.lower().startswith(_SKIPPED_SCHEMES):
        return None
    try:
        absolute = urljoin(base_url, raw)
        parsed = urlparse(absolute)
    except ValueError:
        logger.debug("Unresolvable href %r on %s", raw, base_url)
        return None
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return absolute


def normalize_url(url: str) -> str:
    """Dedup key for a page: lowercase scheme and host, ``/`` for an empty path, no fragment."""
    parsed = urlparse(url)
    return urlunparse(
        (
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            parsed.path or "/",
            parsed.params,
            parsed.query,
            "",
        )
    )


def is_same_domain(url: str, reference: str) -> bool:
    """Same scheme and host (port included) as *reference*."""
    try:
        a, b = urlparse(url), urlparse(reference)
    except ValueError:
        return False
    return a.scheme.lower() == b.scheme.lower() and a.netloc.lower() == b.netloc.lower()


@lru_cache(maxsize=256)
def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    # only "*" is a wildcard, everything else matches literally
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


def should_exclude_url(url: str, patterns: Iterable[str]) -> bool:
    """True if any glob-style *patterns* entry matches somewhere in *url*."""
    return any(_glob_to_regex(p).search(url) for p in patterns if p)


def has_fragment(url: str) -> bool:
    return "#" in url


def is_non_html_link(url: str) -> bool:
    path = urlparse(url).path.lower()
    return path.endswith(NON_HTML_EXTENSIONS)


def sanitize_filename(name: str) -> str:
    """Filesystem-safe lowercase name: every non-alphanumeric becomes ``_``."""
    return re.sub(r"[^a-z0-9]", "_", name.lower()) or "index"


def truncate_text(text: str, max_length: int = 1000) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
