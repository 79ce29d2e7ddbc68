"""
Resolve article page content: cached or fetched HTML, full text and publication date.

Extraction rules by document type:

- ``ar`` (article): text of every paragraph
- ``ss`` (slideshow): gallery caption text
- ``vi`` (video): video description text

The publication date is read from ``span.date`` as ``M/D/YYYY``. Any failure
(unknown id in the type map, network or cache error, missing date) yields an
``EnrichmentResult.failure`` with every content field empty; nothing is raised.
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup, ParserRejectedMarkup

from ..core.html_cache import HtmlCache
from ..core.http_client import RetryableHTTPClient
from ..core.models import ArticleRecord, EnrichedContent, EnrichmentResult
from ..core.text_utils import collapse_spaces, join_visible_text

logger = logging.getLogger(__name__)

TEXT_SELECTORS: Dict[str, str] = {
    'ar': 'p',
    'ss': 'div.gallery-caption-text',
    'vi': 'div.video-description',
}
DATE_SELECTOR = 'span.date'
DATE_FORMAT = '%m/%d/%Y'


def content_id_from_url(url: str) -> str:
    """Return the final path segment of *url* without its extension.

    Examples:
        >>> content_id_from_url("https://assets.msn.com/labs/mind/AAGH0ET.html")
        'AAGH0ET'
    """
    path = urlparse(url).path.rstrip('/')
    return os.path.splitext(os.path.basename(path))[0]


def extract_full_text(soup: BeautifulSoup, doc_type: str) -> str:
    """Concatenate the visible text of the region selected for *doc_type*."""
    selector = TEXT_SELECTORS.get(doc_type)
    if selector is None:
        return ""
    fragments: List[str] = []
    for element in soup.select(selector):
        fragments.extend(element.find_all(string=True))
    return join_visible_text(fragments)


def extract_date(soup: BeautifulSoup) -> datetime.datetime:
    """Parse the page's publication date.

    Raises:
        ValueError: If the date element is missing or not in ``M/D/YYYY`` form.
    """
    element = soup.select_one(DATE_SELECTOR)
    if element is None:
        raise ValueError(f"no '{DATE_SELECTOR}' element")
    text = collapse_spaces(element.get_text())
    parsed = datetime.datetime.strptime(text, DATE_FORMAT)
    return parsed.replace(tzinfo=datetime.timezone.utc)


class ContentEnricher:
    """Turns an ArticleRecord into EnrichedContent using the HTML cache and the network."""

    def __init__(
        self,
        type_map: Mapping[str, str],
        cache: HtmlCache,
        client: RetryableHTTPClient,
        timeout: Optional[float] = None,
    ):
        self.type_map = type_map
        self.cache = cache
        self.client = client
        self.timeout = timeout

    def get_page(self, url: str, content_id: str) -> str:
        """Return cached HTML for *content_id*, fetching and caching it when absent."""
        cached = self.cache.get(content_id)
        if cached is not None:
            return cached
        html = self.client.get_text(url, timeout=self.timeout)
        self.cache.put(content_id, html)
        return html

    def enrich(self, article: ArticleRecord) -> EnrichmentResult:
        content_id = content_id_from_url(article.url)
        if not content_id:
            return self._failed(article, "article url has no content id")

        doc_type = self.type_map.get(content_id)
        if doc_type is None:
            return self._failed(article, f"no document type for {content_id}")

        try:
            html = self.get_page(article.url, content_id)
        except (requests.RequestException, OSError, ValueError) as e:
            # ValueError covers cached pages that are not valid UTF-8.
            return self._failed(article, f"page unavailable: {e}")

        try:
            soup = BeautifulSoup(html, 'html.parser')
            full_text = extract_full_text(soup, doc_type)
            date = extract_date(soup)
        except (ParserRejectedMarkup, ValueError, TypeError, AttributeError) as e:
            return self._failed(article, f"extraction failed: {e}")

        return EnrichmentResult.success(EnrichedContent(html=html, full_text=full_text, date=date))

    def _failed(self, article: ArticleRecord, reason: str) -> EnrichmentResult:
        logger.debug(f"Enrichment of {article.id} ({article.url}) failed: {reason}")
        return EnrichmentResult.failure(reason)


__all__ = [
    "ContentEnricher",
    "content_id_from_url",
    "extract_full_text",
    "extract_date",
    "TEXT_SELECTORS",
]
