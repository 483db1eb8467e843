from __future__ import annotations

import re
from dataclasses import dataclass

import trafilatura
from bs4 import BeautifulSoup

STRIP_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "aside", "form")


@dataclass
class ExtractedPage:
    title: str
    text: str
    method: str


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def _soup_title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.string:
        return normalize_text(soup.title.string)
    return ""


def extract_page(html: str) -> ExtractedPage:
    """Pull readable text out of an HTML document.

    Trafilatura handles article-shaped pages; anything it rejects falls back
    to BeautifulSoup text with boilerplate tags removed.
    """
    soup = BeautifulSoup(html, "html.parser")
    title = _soup_title(soup)

    extracted = trafilatura.extract(html, output_format="txt")
    if isinstance(extracted, str) and extracted.strip():
        return ExtractedPage(title=title, text=normalize_text(extracted), method="trafilatura")

    for tag in soup(STRIP_TAGS):
        tag.decompose()
    body = soup.body or soup
    return ExtractedPage(title=title, text=normalize_text(body.get_text("\n")), method="bs4")
