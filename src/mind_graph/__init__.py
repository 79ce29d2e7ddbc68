from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from .commands import download as download_cmd
from .commands import ingest as ingest_cmd
from .core.config import ConfigManager, DEFAULT_CONFIG_PATH
from .core.paths import get_data_dir
from .processors.pipeline import IngestSummary

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = str(DEFAULT_CONFIG_PATH)

__all__ = [
    'ingest',
    'download',
    'status',
    'IngestSummary',
]


def ingest(
    size: str,
    server: str,
    token: str,
    *,
    split: Optional[str] = None,
    negatives: Optional[str] = None,
    max_in_flight: Optional[int] = None,
    commit_every: Optional[int] = None,
    config_path: Optional[str] = None,
) -> IngestSummary:
    """Ingest a MIND release into the graph store at *server*.

    Args:
        size: ``small`` or ``large``.
        server: Graph server URL, or a SQLite path for a local store.
        token: Access token for the graph server.
        split: Archive split to ingest (``train`` or ``dev``).
        negatives: ``ignored`` links non-clicked impressions as Ignored,
            ``viewed`` folds them into Viewed.
        max_in_flight: Bound on concurrent article enrichment units.
        commit_every: Impressions between periodic commits.
        config_path: Path to main YAML config; defaults to the data dir config.
    """
    cfg_path = config_path or _DEFAULT_CONFIG
    return ingest_cmd.run(
        cfg_path,
        size,
        server,
        token,
        split=split,
        negatives=negatives,
        max_in_flight=max_in_flight,
        commit_every=commit_every,
    )


def download(size: str, config_path: Optional[str] = None) -> None:
    """Download the archives for *size* and the document-type map."""
    cfg_path = config_path or _DEFAULT_CONFIG
    download_cmd.run(cfg_path, size)


def status(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration and environment status for programmatic use."""
    cfg_path = config_path or _DEFAULT_CONFIG
    info: Dict[str, Any] = {'config_path': cfg_path, 'data_dir': str(get_data_dir())}
    if not os.path.exists(cfg_path):
        info.update({'valid': False, 'error': f'Config file not found: {cfg_path}'})
        return info
    try:
        cm = ConfigManager(cfg_path)
        valid = cm.validate_config()
        info.update({
            'valid': bool(valid),
            'dataset': cm.get_section('dataset'),
            'ingest': cm.get_section('ingest'),
        })
        return info
    except Exception as e:
        info.update({'valid': False, 'error': str(e)})
        return info
