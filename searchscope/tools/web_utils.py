from __future__ import annotations

import re
from urllib.parse import urlparse


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except ValueError:
        return False


def clean_content(text: str, max_length: int = 8000) -> str:
    """Clean fetched content: collapse whitespace, trim to max length."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def extract_host(url: str) -> str:
    """Lower-cased hostname used as the diversity key."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


TEST_URL_RE = re.compile(r"^https?://(www\.)?example\.com/test", re.IGNORECASE)


def is_test_url(url: str) -> bool:
    """URLs of the canned test results; never fetched or sent to a model."""
    return bool(TEST_URL_RE.match(url or ""))
