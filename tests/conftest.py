"""Shared fixtures: tiny MIND archives and an offline HTTP client."""

from __future__ import annotations

import json
import sys
import zipfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import requests

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


def entity_json(wikidata_id: str, label: str, surface_forms: List[str], type_: str = "P") -> Dict:
    return {
        "Label": label,
        "Type": type_,
        "WikidataId": wikidata_id,
        "Confidence": 1.0,
        "OccurrenceOffsets": [0],
        "SurfaceForms": surface_forms,
    }


def news_line(
    article_id: str,
    category: str = "news",
    subcategory: str = "politics",
    title: str = "A title",
    abstract: str = "An abstract",
    url: Optional[str] = None,
    title_entities: Optional[List[Dict]] = None,
    abstract_entities: Optional[List[Dict]] = None,
) -> str:
    url = url or f"https://assets.msn.com/labs/mind/{article_id}.html"
    fields = [
        article_id,
        category,
        subcategory,
        title,
        abstract,
        url,
        json.dumps(title_entities or []),
        json.dumps(abstract_entities or []),
    ]
    return "\t".join(fields)


def behavior_line(
    impression_id: str,
    user_id: str,
    history: str = "",
    impressions: str = "",
    time: str = "11/15/2019 8:55:22 AM",
) -> str:
    return "\t".join([impression_id, user_id, time, history, impressions])


def page_html(paragraphs: List[str], date: Optional[str] = "11/11/2019", doc_type: str = "ar") -> str:
    if doc_type == "ss":
        body = "".join(f'<div class="gallery-caption-text">{p}</div>' for p in paragraphs)
    elif doc_type == "vi":
        body = "".join(f'<div class="video-description">{p}</div>' for p in paragraphs)
    else:
        body = "".join(f"<p>{p}</p>" for p in paragraphs)
    date_html = f'<span class="date">\n  {date}\n</span>' if date is not None else ""
    return f"<html><head><title>t</title></head><body>{date_html}{body}</body></html>"


@pytest.fixture
def make_archive(tmp_path):
    """Return a factory writing a zip with news.tsv and behaviors.tsv."""

    def _make(news: List[str], behaviors: List[str], name: str = "MINDsmall_train.zip", prefix: str = "") -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr(prefix + "news.tsv", "\n".join(news) + ("\n" if news else ""))
            zf.writestr(prefix + "behaviors.tsv", "\n".join(behaviors) + ("\n" if behaviors else ""))
        return path

    return _make


class FakeHTTPClient:
    """Serves pages from a dict; unknown URLs raise ConnectionError."""

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.pages = dict(pages or {})
        self.requested: List[str] = []

    def get_text(self, url, timeout=None):
        self.requested.append(url)
        if url not in self.pages:
            raise requests.ConnectionError(f"unreachable: {url}")
        return self.pages[url]

    def close(self):
        pass


@pytest.fixture
def fake_http():
    return FakeHTTPClient()
