"""
Streaming reader for the MIND zip archives.

Each archive holds two tab-separated members:

- ``news.tsv``: id, category, subcategory, title, abstract, url,
  title entities (JSON array), abstract entities (JSON array)
- ``behaviors.tsv``: impression id, user id, time, history (space-separated
  article ids), impressions (space-separated ``<id>-<label>`` tokens)

Quoting is disabled. Rows are decoded lazily; the generators are forward-only
and each call re-opens the archive. A malformed row aborts the read with
``ArchiveDecodeError``.
"""

from __future__ import annotations

import csv
import datetime
import io
import json
import logging
import posixpath
import sys
import zipfile
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from ..core.models import (
    IMPRESSION_TIME_FORMAT,
    ArticleRecord,
    EntityMention,
    ImpressionRecord,
    ImpressionToken,
)

logger = logging.getLogger(__name__)

NEWS_MEMBER = "news.tsv"
BEHAVIORS_MEMBER = "behaviors.tsv"

NEWS_COLUMNS = 8
BEHAVIOR_COLUMNS = 5

# Entity JSON columns can be far larger than csv's default 128 KiB field limit.
FIELD_SIZE_LIMIT = min(sys.maxsize, 2 ** 31 - 1)


class ArchiveDecodeError(ValueError):
    """Raised when an archive member is missing or one of its rows is malformed."""


def _split_tokens(field: Optional[str]) -> Tuple[str, ...]:
    if not field:
        return ()
    return tuple(field.split())


def _decode_entities(field: Optional[str]) -> Tuple[EntityMention, ...]:
    if field is None or not field.strip():
        return ()
    data = json.loads(field)
    if data is None:
        return ()
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array of entities, got {type(data).__name__}")
    return tuple(EntityMention.from_json(obj) for obj in data)


def _parse_time(field: Optional[str]) -> Optional[datetime.datetime]:
    if not field:
        return None
    return datetime.datetime.strptime(field.strip(), IMPRESSION_TIME_FORMAT)


def _pad(row: List[str], width: int, min_width: int) -> List[str]:
    """Allow trailing optional columns to be absent; reject anything else."""
    if not (min_width <= len(row) <= width):
        raise ValueError(f"expected {width} tab-separated fields, found {len(row)}")
    return row + [""] * (width - len(row))


def parse_news_row(row: List[str]) -> ArticleRecord:
    row = _pad(row, NEWS_COLUMNS, 6)
    return ArticleRecord(
        id=row[0],
        category=row[1],
        subcategory=row[2],
        title=row[3],
        abstract=row[4],
        url=row[5],
        title_entities=_decode_entities(row[6]),
        abstract_entities=_decode_entities(row[7]),
    )


def parse_behavior_row(row: List[str]) -> ImpressionRecord:
    row = _pad(row, BEHAVIOR_COLUMNS, 3)
    return ImpressionRecord(
        id=row[0],
        user_id=row[1],
        time=_parse_time(row[2]),
        history=_split_tokens(row[3]),
        impressions=tuple(ImpressionToken.parse(token) for token in _split_tokens(row[4])),
    )


class RecordReader:
    """Produces article and impression records from one MIND archive."""

    def __init__(self, archive_path: Path):
        self.archive_path = Path(archive_path)

    def _member_name(self, archive: zipfile.ZipFile, member: str) -> str:
        for name in archive.namelist():
            if posixpath.basename(name) == member:
                return name
        raise ArchiveDecodeError(f"{self.archive_path} has no member named {member}")

    def _iter_rows(self, member: str) -> Iterator[Tuple[int, List[str]]]:
        try:
            archive = zipfile.ZipFile(self.archive_path)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveDecodeError(f"Cannot open archive {self.archive_path}: {e}") from e

        with archive:
            with archive.open(self._member_name(archive, member)) as raw:
                text = io.TextIOWrapper(raw, encoding="utf-8", newline="")
                if csv.field_size_limit() < FIELD_SIZE_LIMIT:
                    csv.field_size_limit(FIELD_SIZE_LIMIT)
                reader = csv.reader(text, delimiter="\t", quoting=csv.QUOTE_NONE)
                try:
                    for row in reader:
                        if not row:
                            continue
                        yield reader.line_num, row
                except (csv.Error, UnicodeDecodeError, zipfile.BadZipFile) as e:
                    raise ArchiveDecodeError(f"{member}: unreadable data near line {reader.line_num}: {e}") from e

    def read_news(self) -> Iterator[ArticleRecord]:
        """Yield one ArticleRecord per row of ``news.tsv``."""
        count = 0
        for line_num, row in self._iter_rows(NEWS_MEMBER):
            try:
                record = parse_news_row(row)
            except (ValueError, KeyError, TypeError) as e:
                raise ArchiveDecodeError(f"{NEWS_MEMBER} line {line_num}: {e}") from e
            count += 1
            yield record
        logger.info(f"Read {count} articles from {self.archive_path.name}")

    def read_impressions(self) -> Iterator[ImpressionRecord]:
        """Yield one ImpressionRecord per row of ``behaviors.tsv``."""
        count = 0
        for line_num, row in self._iter_rows(BEHAVIORS_MEMBER):
            try:
                record = parse_behavior_row(row)
            except (ValueError, KeyError, TypeError) as e:
                raise ArchiveDecodeError(f"{BEHAVIORS_MEMBER} line {line_num}: {e}") from e
            count += 1
            yield record
        logger.info(f"Read {count} impressions from {self.archive_path.name}")


__all__ = [
    "ArchiveDecodeError",
    "RecordReader",
    "parse_news_row",
    "parse_behavior_row",
    "NEWS_MEMBER",
    "BEHAVIORS_MEMBER",
]
