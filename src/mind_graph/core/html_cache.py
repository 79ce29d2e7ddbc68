"""Write-once on-disk cache of fetched article pages, one ``<id>.html`` per content id."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class HtmlCache:
    """Directory of cached pages shared by concurrent enrichment units.

    Entries are never invalidated. Writes go to a temporary file that is then
    renamed into place, so readers never observe a partial page; when two
    units race on the same id the last rename wins with identical content.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, content_id: str) -> Path:
        return self.directory / f"{content_id}.html"

    def get(self, content_id: str) -> Optional[str]:
        path = self.path_for(content_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put(self, content_id: str, html: str) -> Path:
        target = self.path_for(content_id)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{content_id}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(html)
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Cached {content_id} at {target}")
        return target

    def __contains__(self, content_id: str) -> bool:
        return self.path_for(content_id).exists()
