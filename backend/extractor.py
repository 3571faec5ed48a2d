# extractor.py
"""
Turns an article URL into {title, clean_text, source, published_at}.

Every heuristic is an ordered chain that is evaluated top to bottom:
title and date stop at the first usable value, body text keeps the longest
candidate.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup
from dateutil.parser import parse as dateutil_parse

from utils import utcnow, to_naive_utc

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 30
MIN_CONTENT_LENGTH = 500
UNTITLED = "Untitled Article"

# Browser-like headers; plenty of publishers reject the default requests UA
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

NOISE_SELECTORS = "script, style, nav, footer, header, aside, .advertisement, .ads, .social-share, .comments"

CONTENT_SELECTORS = [
    "article",
    ".article-content",
    ".post-content",
    ".entry-content",
    ".content",
    "main",
    ".main-content",
]


class FetchError(Exception):
    pass


class ExtractionError(Exception):
    pass


@dataclass
class ExtractedContent:
    title: str
    clean_text: str
    source: str
    published_at: datetime


def _text_of_first(soup, selector: str) -> str:
    el = soup.select_one(selector)
    return el.get_text().strip() if el else ""


def _attr_of_first(soup, selector: str, attr: str) -> str:
    el = soup.select_one(selector)
    return (el.get(attr) or "").strip() if el else ""


def _time_datetime(soup) -> str:
    el = soup.select_one("time[datetime]")
    if not el:
        return ""
    return (el.get("datetime") or el.get_text()).strip()


TITLE_CHAIN: list[tuple[str, Callable]] = [
    ("h1", lambda s: _text_of_first(s, "h1")),
    ("title", lambda s: _text_of_first(s, "title")),
    ("og:title", lambda s: _attr_of_first(s, 'meta[property="og:title"]', "content")),
]

DATE_CHAIN: list[tuple[str, Callable]] = [
    ("time[datetime]", _time_datetime),
    (".published-date", lambda s: _text_of_first(s, ".published-date")),
    (".post-date", lambda s: _text_of_first(s, ".post-date")),
    ("article:published_time", lambda s: _attr_of_first(s, 'meta[property="article:published_time"]', "content")),
    ("publish-date", lambda s: _attr_of_first(s, 'meta[name="publish-date"]', "content")),
]


def _fetch(url: str) -> str:
    try:
        resp = requests.get(url, headers=HEADERS, timeout=FETCH_TIMEOUT_SECONDS, allow_redirects=True)
    except requests.Timeout:
        raise FetchError(f"Timed out after {FETCH_TIMEOUT_SECONDS}s fetching {url}")
    except requests.RequestException as e:
        raise FetchError(f"Failed to fetch {url}: {e}")
    if resp.status_code == 403:
        raise FetchError(f"Forbidden (403) from {url}")
    if not resp.ok:
        raise FetchError(f"Failed to fetch page: HTTP {resp.status_code}")
    return resp.text


def strip_noise(soup: BeautifulSoup) -> BeautifulSoup:
    for el in soup.select(NOISE_SELECTORS):
        el.decompose()
    return soup


def extract_title(soup) -> str:
    for _name, getter in TITLE_CHAIN:
        value = getter(soup)
        if value:
            return value
    return UNTITLED


def extract_body_text(soup) -> str:
    best = ""
    for selector in CONTENT_SELECTORS:
        candidate = "".join(el.get_text() for el in soup.select(selector)).strip()
        if len(candidate) > len(best):
            best = candidate

    if not best:
        body = soup.body or soup
        best = body.get_text().strip()
    return best


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"\n\s*\n", "\n", text)
    return text.strip()


def extract_source(url: str) -> str:
    host = urlparse(url).hostname or ""
    if host.startswith("www."):
        host = host[len("www."):]
    return host


def parse_date(value: str) -> Optional[datetime]:
    # JSON records can carry numbers or nulls here
    if not value or not isinstance(value, str):
        return None
    try:
        return to_naive_utc(dateutil_parse(value))
    except (ValueError, OverflowError):
        return None


def extract_published_at(soup, now: Optional[datetime] = None) -> datetime:
    for name, getter in DATE_CHAIN:
        parsed = parse_date(getter(soup))
        if parsed is not None:
            logger.debug("Published date taken from %s", name)
            return parsed
    return now or utcnow()


def extract_from_html(url: str, html: str) -> ExtractedContent:
    try:
        soup = strip_noise(BeautifulSoup(html, "html.parser"))
        return ExtractedContent(
            title=extract_title(soup),
            clean_text=normalize_whitespace(extract_body_text(soup)),
            source=extract_source(url),
            published_at=extract_published_at(soup),
        )
    except Exception as e:
        raise ExtractionError(f"Failed to extract content from {url}: {e}") from e


def extract_article_content(url: str) -> ExtractedContent:
    """
    Fetches one URL and runs the extraction heuristics on it.
    Raises FetchError for network/HTTP failures, ExtractionError if parsing blows up.
    """
    try:
        html = _fetch(url)
    except FetchError:
        logger.error("Error fetching content from %s", url)
        raise
    return extract_from_html(url, html)


def validate_article_content(content: ExtractedContent) -> bool:
    return (
        len(content.title) > 0
        and len(content.clean_text) > MIN_CONTENT_LENGTH
        and len(content.source) > 0
    )
