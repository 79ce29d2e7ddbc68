"""
Command context for shared initialization across CLI commands.

Loads and validates the configuration and resolves the runtime directories and
shared HTTP client every command needs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from .config import ConfigManager
from .dataset import DatasetDownloader, DatasetSpec
from .http_client import RetryableHTTPClient
from .paths import resolve_data_dir


logger = logging.getLogger(__name__)


class CommandContext:
    """Encapsulates config loading, validation and shared collaborators.

    Example:
        ```python
        with CommandContext(config_path) as ctx:
            spec = ctx.dataset_spec("small")
            type_map = ctx.downloader.download(spec)
        ```
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize command context with a validated config.

        Raises:
            ValueError: If configuration is invalid
        """
        self.config_manager = ConfigManager(config_path)

        if not self.config_manager.validate_config():
            raise ValueError("Invalid configuration. Run 'mind-graph status' for details.")

        self.config = self.config_manager.load_config()
        self.http = RetryableHTTPClient(
            max_retries=int(self.get('enrichment', 'max_retries', 3)),
            timeout=float(self.get('enrichment', 'timeout', 600)),
        )
        self.downloader = DatasetDownloader(
            self.data_dir,
            self.http,
            timeout=float(self.get('dataset', 'download_timeout', 600)),
        )

        logger.debug(f"CommandContext initialized with config from {self.config_manager.config_path}")

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Return ``config[section][key]`` or *default* when unset."""
        value = (self.config.get(section) or {}).get(key)
        return value if value is not None else default

    @property
    def data_dir(self) -> Path:
        return resolve_data_dir(self.get('dataset', 'data_dir', 'data'), ensure_exists=True)

    @property
    def cache_dir(self) -> Path:
        return resolve_data_dir(self.get('enrichment', 'cache_dir', 'html_cache'), ensure_exists=True)

    def dataset_spec(self, size: str) -> DatasetSpec:
        return DatasetSpec.from_config(self.config, size)

    def close(self) -> None:
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
