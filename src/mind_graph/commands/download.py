"""Download the MIND archives and the document-type map without ingesting them."""

from __future__ import annotations

import logging
from typing import Optional

from ..core.command_context import CommandContext

logger = logging.getLogger(__name__)


def run(config_path: Optional[str], size: str) -> None:
    """Fetch both archives for *size* and the type map into the data directory.

    Files already present are kept as they are.
    """
    with CommandContext(config_path) as ctx:
        spec = ctx.dataset_spec(size)
        type_map = ctx.downloader.download(spec)
        logger.info(f"MIND {size} ready in {ctx.data_dir} ({len(type_map)} document types)")
