"""Timestamped backups of the store file with retention rotation."""

from __future__ import annotations

import logging
import shutil
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from dexstore.storage.db import DexStore

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M"


@dataclass
class BackupReport:
    """Outcome of one backup run. Failures are described, never raised."""

    success: bool = False
    backup_path: Optional[str] = None
    removed: List[str] = field(default_factory=list)
    warning: str = ""
    error: str = ""


class BackupManager:
    """Copy the store into a backups directory and keep the newest N copies.

    Backups are named "<store file name>.<YYYY-mm-dd-HH-MM>", so at most one
    backup per minute can be made.
    """

    def __init__(self, db_path: str, backups_dir: str, store: Optional[DexStore] = None):
        self.db_path = Path(db_path)
        self.backups_dir = Path(backups_dir)
        self.store = store

    def backup_name(self, when: datetime) -> str:
        return f"{self.db_path.name}.{when.strftime(TIMESTAMP_FORMAT)}"

    def existing_backups(self) -> List[Path]:
        """Backups of this store, oldest first by modification time."""
        found = [
            p
            for p in self.backups_dir.iterdir()
            if p.is_file() and p.stem == self.db_path.name
        ]
        return sorted(found, key=lambda p: p.stat().st_mtime)

    def auto_backup(self, keep: int, now: Optional[datetime] = None) -> BackupReport:
        """Create a backup and delete all but the `keep` most recent ones."""
        report = BackupReport()

        if keep <= 0:
            logger.info("Automatic store backups are disabled")
            return report

        if not self.backups_dir.is_dir():
            report.error = f"Backup folder {self.backups_dir} not found!"
            logger.error(report.error)
            return report

        target = self.backups_dir / self.backup_name(now or datetime.now())
        if target.exists():
            report.warning = (
                f"Failed to create backup, file {target} already exists! This can happen "
                "when the application is restarted within a minute."
            )
            logger.warning(report.warning)
            return report

        try:
            if self.store is not None and self.store.is_open:
                self.store.backup_to(str(target))
                logger.info("Hot backup of %s -> %s", self.db_path, target)
            elif self.db_path.exists():
                shutil.copy2(self.db_path, target)
                logger.info("Creating backup of %s -> %s", self.db_path, target)
            else:
                report.warning = f"Store file {self.db_path} not found, nothing to back up"
                logger.warning(report.warning)
                return report
        except (OSError, sqlite3.Error) as exc:
            report.warning = f"Failed to create backup {target}!"
            report.error = str(exc)
            logger.warning("%s %s", report.warning, exc)
            return report

        report.backup_path = str(target)

        for old in self.existing_backups()[:-keep]:
            try:
                old.unlink()
                report.removed.append(str(old))
                logger.info("Old backup deleted: %s", old)
            except OSError as exc:
                report.warning = f"Failed to delete backup {old}"
                report.error = str(exc)
                logger.warning("%s: %s", report.warning, exc)
                return report

        report.success = True
        return report
