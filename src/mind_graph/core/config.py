"""Configuration management for the YAML config file."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .paths import get_data_dir

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = get_data_dir() / "config"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"

SIZE_SELECTORS = ("small", "large")
SPLITS = ("train", "dev")
NEGATIVE_POLICIES = ("ignored", "viewed")

_DEFAULT_CONFIG_TEMPLATE = """# Auto-generated default configuration for mind-graph
dataset:
  base_url: "https://mind201910small.blob.core.windows.net/release/"
  doc_type_url: "https://raw.githubusercontent.com/msnews/MIND/master/crawler/doc_type.json"
  data_dir: "data"
  split: "train"
  download_timeout: 600
  archives:
    small:
      train: "MINDsmall_train.zip"
      dev: "MINDsmall_dev.zip"
    large:
      train: "MINDlarge_train.zip"
      dev: "MINDlarge_dev.zip"

enrichment:
  cache_dir: "html_cache"
  timeout: 600
  max_retries: 3

ingest:
  graph_name: "MIND"
  max_in_flight: 20
  commit_every: 10000
  # "ignored" links negative impressions as Ignored/IgnoredBy,
  # "viewed" folds them into Viewed/ViewedBy.
  negative_impressions: "ignored"
  alias_language: "en"
  track_categories: true
"""


def _write_template(path: Path, content: str) -> None:
    """Write templated YAML content to disk with a trailing newline."""
    path.write_text(content.strip() + "\n", encoding="utf-8")


class ConfigManager:
    """Manages loading and validation of the YAML configuration file."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the manager and ensure a baseline config file exists."""
        path = Path(config_path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.is_absolute():
            path = path.resolve()
        self.config_path = str(path)
        self.base_dir = str(path.parent)
        self._config = None
        self._ensure_default_config()

    def load_config(self) -> Dict[str, Any]:
        """Load the main configuration file."""
        if self._config is None:
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config = yaml.safe_load(f) or {}
                logger.info(f"Loaded configuration from {self.config_path}")
            except Exception as e:
                logger.error(f"Failed to load config from {self.config_path}: {e}")
                raise

        return self._config

    def _ensure_default_config(self) -> None:
        """Create the default configuration file if it is missing."""
        config_file = Path(self.config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        if not config_file.exists():
            _write_template(config_file, _DEFAULT_CONFIG_TEMPLATE)
            logger.info("Created default config.yaml at %s", config_file)

    def get_section(self, name: str) -> Dict[str, Any]:
        """Return a top-level section, or an empty dict when absent."""
        config = self.load_config()
        return config.get(name) or {}

    def validate_config(self) -> bool:
        """Validate the configuration file."""
        try:
            config = self.load_config()

            required_sections = ['dataset', 'enrichment', 'ingest']
            for section in required_sections:
                if section not in config:
                    logger.error(f"Missing required section '{section}' in main config")
                    return False

            dataset = config['dataset']
            for key in ('base_url', 'doc_type_url', 'archives'):
                if key not in dataset:
                    logger.error(f"Missing required dataset key '{key}'")
                    return False
            archives = dataset['archives'] or {}
            for size in SIZE_SELECTORS:
                entry = archives.get(size) or {}
                for split in SPLITS:
                    if not entry.get(split):
                        logger.error(f"dataset.archives.{size}.{split} must name an archive file")
                        return False
            split = dataset.get('split', 'train')
            if split not in SPLITS:
                logger.error(f"dataset.split must be one of {', '.join(SPLITS)} (got '{split}')")
                return False

            ingest = config['ingest']
            for key in ('max_in_flight', 'commit_every'):
                value = ingest.get(key)
                if value is None:
                    continue
                if not isinstance(value, int) or value < 1:
                    logger.error(f"ingest.{key} must be a positive integer")
                    return False
            policy = ingest.get('negative_impressions', 'ignored')
            if policy not in NEGATIVE_POLICIES:
                logger.error(
                    f"ingest.negative_impressions must be one of {', '.join(NEGATIVE_POLICIES)} (got '{policy}')"
                )
                return False

            timeout = (config['enrichment'] or {}).get('timeout')
            if timeout is not None and not isinstance(timeout, (int, float)):
                logger.error("enrichment.timeout must be a number of seconds")
                return False

            logger.info("Configuration validation passed")
            return True

        except Exception as e:
            logger.error(f"Configuration validation failed: {e}")
            return False


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_CONFIG_DIR",
    "SIZE_SELECTORS",
    "SPLITS",
    "NEGATIVE_POLICIES",
]
