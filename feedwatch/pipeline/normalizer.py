"""Text normalization for scraped previews, titles and names."""

import html
import re
from typing import Iterable, Optional

REMOTE_VARIANTS = {
    "remote", "anywhere", "worldwide", "work from home", "wfh", "distributed",
}


def strip_html(text: str) -> str:
    """Remove HTML tags and decode entities."""
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text)


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs and strip."""
    return re.sub(r"\s+", " ", text).strip()


def clean_text(raw: Optional[str]) -> str:
    if not raw:
        return ""
    return normalize_whitespace(strip_html(raw))


def truncate(text: str, limit: int) -> str:
    """Cut to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def contains_any(text: Optional[str], keywords: Iterable[str]) -> Optional[str]:
    """First keyword found in text (case-insensitive substring), else None."""
    lowered = (text or "").lower()
    for keyword in keywords:
        if keyword and keyword.lower() in lowered:
            return keyword
    return None


def infer_work_location(location: Optional[str], title: Optional[str] = None) -> str:
    """Classify a posting as remote, hybrid or onsite from its free text."""
    loc = (location or "").lower()
    ttl = (title or "").lower()

    if "hybrid" in loc or "hybrid" in ttl:
        return "hybrid"
    if any(variant in loc for variant in REMOTE_VARIANTS) or "remote" in ttl:
        return "remote"
    return "onsite"
