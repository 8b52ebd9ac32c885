"""Store settings read from the `store:` section of config.yaml."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from dexstore.storage.db import DEFAULT_BUSY_TIMEOUT_MS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_DB_PATH = "data/dex.db"
DEFAULT_BACKUPS_DIR = "data/backups"
DEFAULT_BACKUPS_TO_KEEP = 10


@dataclass
class StoreSettings:
    db_path: str = DEFAULT_DB_PATH
    backups_dir: str = DEFAULT_BACKUPS_DIR
    backups_to_keep: int = DEFAULT_BACKUPS_TO_KEEP
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS
    default_data_path: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> StoreSettings:
        """Build settings from a parsed config.yaml; missing keys keep their defaults."""
        store = cfg.get("store") or {}
        return cls(
            db_path=store.get("path", DEFAULT_DB_PATH),
            backups_dir=store.get("backups_dir", DEFAULT_BACKUPS_DIR),
            backups_to_keep=int(store.get("backups_to_keep", DEFAULT_BACKUPS_TO_KEEP)),
            busy_timeout_ms=int(store.get("busy_timeout_ms", DEFAULT_BUSY_TIMEOUT_MS)),
            default_data_path=store.get("default_data"),
        )


def load_settings(config_path: str = DEFAULT_CONFIG_PATH) -> StoreSettings:
    """Load settings from YAML. A missing file yields the defaults."""
    path = Path(config_path)
    if not path.exists():
        logger.debug("Config %s not found, using defaults", config_path)
        return StoreSettings()
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    return StoreSettings.from_config(cfg)
