from __future__ import annotations

import time
from dataclasses import dataclass

import httpx
from loguru import logger

from searchscope.config import Settings
from searchscope.exceptions import RateLimitedError, UpstreamError, ValidationError
from searchscope.services.rate_limiter import AllowAllRateLimiter, RateLimiter, enforce
from searchscope.tools.content_extractor import extract_page, normalize_text
from searchscope.tools.web_utils import clean_content, is_test_url, is_valid_url

USER_AGENT = "Mozilla/5.0 (compatible; SearchScope/1.0; +https://github.com/searchscope)"


@dataclass
class FetchedContent:
    """Readable text for one URL."""

    url: str
    content: str
    title: str = ""
    method: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "content": self.content, "title": self.title, "method": self.method}


class ContentFetcher:
    """Fetches page text through Jina Reader when configured, else directly.

    A 429 from the reader service or the local limiter raises RateLimitedError
    so callers can abort a batch; every other failure is an UpstreamError.
    """

    def __init__(self, settings: Settings, rate_limiter: RateLimiter | None = None):
        self.settings = settings
        self.rate_limiter = rate_limiter or AllowAllRateLimiter()

    async def fetch(self, url: str, *, client_key: str = "global") -> FetchedContent:
        if not url or not is_valid_url(url):
            raise ValidationError(f"Invalid URL: {url}")
        if is_test_url(url):
            return FetchedContent(url=url, content=f"Test content for {url}.", title="Test Page", method="test")
        await enforce(self.rate_limiter, client_key, what="content fetch")

        t0 = time.monotonic()
        if self.settings.jina_api_key:
            fetched = await self._fetch_via_reader(url)
        else:
            fetched = await self._fetch_direct(url)

        if not fetched.content:
            raise UpstreamError(f"No content extracted from {url}")
        logger.info(
            f"Fetched {url} via {fetched.method}: {len(fetched.content)} chars "
            f"in {int((time.monotonic() - t0) * 1000)}ms"
        )
        return fetched

    async def _fetch_via_reader(self, url: str) -> FetchedContent:
        headers = {
            "Authorization": f"Bearer {self.settings.jina_api_key}",
            "X-Return-Format": "markdown",
        }
        reader_url = f"{self.settings.jina_reader_base_url.rstrip('/')}/{url}"
        try:
            async with httpx.AsyncClient(timeout=self.settings.http_timeout_seconds) as client:
                response = await client.get(reader_url, headers=headers)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Reader request failed for {url}: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError("Content reader rate limited (429)")
        if response.status_code >= 400:
            raise UpstreamError(f"Reader returned {response.status_code} for {url}")

        text = normalize_text(response.text or "")
        title = ""
        first_line = text.split("\n", 1)[0]
        if first_line.lower().startswith("title:"):
            title = first_line[len("title:") :].strip()
        return FetchedContent(
            url=url,
            content=clean_content(text, self.settings.content_max_chars),
            title=title,
            method="reader",
        )

    async def _fetch_direct(self, url: str) -> FetchedContent:
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Fetch failed for {url}: {exc}") from exc

        # A single site throttling us is not a reason to abort the batch.
        if response.status_code >= 400:
            raise UpstreamError(f"{url} returned {response.status_code}")

        content_type = response.headers.get("content-type", "")
        if "html" in content_type or not content_type:
            page = extract_page(response.text or "")
            text, title, method = page.text, page.title, page.method
        else:
            text, title, method = normalize_text(response.text or ""), "", "raw"
        return FetchedContent(
            url=url,
            content=clean_content(text, self.settings.content_max_chars),
            title=title,
            method=method,
        )
