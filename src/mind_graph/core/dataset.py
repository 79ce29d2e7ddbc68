"""
MIND dataset archives and the companion document-type map.

Archives are cached under a local directory keyed by filename: a file that is
already present is never downloaded again (no integrity check).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional
from urllib.parse import urlparse

from .config import SIZE_SELECTORS, SPLITS
from .http_client import RetryableHTTPClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSpec:
    """Which MIND release to ingest and where to fetch it from."""

    size: str
    train_archive: str
    dev_archive: str
    base_url: str
    doc_type_url: str

    @classmethod
    def from_config(cls, config: Dict[str, Any], size: str) -> "DatasetSpec":
        """Build the spec for *size* from the ``dataset`` config section.

        Raises:
            ValueError: If *size* is not one of the supported selectors.
        """
        if size not in SIZE_SELECTORS:
            raise ValueError(f"Invalid type: {size}, supported values are 'small' and 'large'")
        dataset = config.get('dataset') or {}
        archives = (dataset.get('archives') or {})[size]
        base_url = dataset['base_url']
        if not base_url.endswith('/'):
            base_url += '/'
        return cls(
            size=size,
            train_archive=archives['train'],
            dev_archive=archives['dev'],
            base_url=base_url,
            doc_type_url=dataset['doc_type_url'],
        )

    def archive_name(self, split: str = "train") -> str:
        if split not in SPLITS:
            raise ValueError(f"Unknown split '{split}', expected one of {', '.join(SPLITS)}")
        return self.train_archive if split == "train" else self.dev_archive

    def archive_url(self, split: str = "train") -> str:
        return self.base_url + self.archive_name(split)

    @property
    def doc_type_filename(self) -> str:
        return os.path.basename(urlparse(self.doc_type_url).path)


class TypeMap(Mapping[str, str]):
    """Content id -> document type tag (``ar``, ``ss``, ``vi``)."""

    def __init__(self, types: Optional[Dict[str, str]] = None):
        self._types = dict(types or {})

    @classmethod
    def load(cls, path: Path) -> "TypeMap":
        with open(path, 'r', encoding='utf-8') as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Type map at {path} is not a JSON object")
        logger.info(f"Loaded {len(data)} document types from {path}")
        return cls({str(k): str(v) for k, v in data.items()})

    def __getitem__(self, content_id: str) -> str:
        return self._types[content_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)


class DatasetDownloader:
    """Downloads archives and the type map into a local directory."""

    def __init__(self, data_dir: Path, client: RetryableHTTPClient, timeout: Optional[float] = None):
        self.data_dir = Path(data_dir)
        self.client = client
        self.timeout = timeout

    def download_file(self, url: str) -> Path:
        """Download *url* into the data dir unless a file of that name exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        filename = os.path.basename(urlparse(url).path)
        target = self.data_dir / filename

        if target.exists():
            logger.debug(f"Using cached {target}")
            return target

        logger.info(f"Downloading {url} to {target}")
        partial = target.with_name(target.name + ".part")
        try:
            written = self.client.download_to(url, partial, name=filename, timeout=self.timeout)
            os.replace(partial, target)
        except BaseException:
            if partial.exists():
                partial.unlink()
            raise
        logger.info(f"[{filename}] Done, {written / 1024 / 1024:.1f} MB")
        return target

    def archive_path(self, spec: DatasetSpec, split: str = "train") -> Path:
        return self.data_dir / spec.archive_name(split)

    def download(self, spec: DatasetSpec) -> TypeMap:
        """Fetch both archives of *spec* and load the type map."""
        for split in SPLITS:
            self.download_file(spec.archive_url(split))
        return self.load_type_map(spec)

    def load_type_map(self, spec: DatasetSpec) -> TypeMap:
        return TypeMap.load(self.download_file(spec.doc_type_url))


__all__ = ["DatasetSpec", "TypeMap", "DatasetDownloader"]
