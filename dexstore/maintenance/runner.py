"""Scheduled maintenance for the offer store.

Runs the jobs the application schedules externally: dropping expired
broadcast offers, marking the wallet's own expired offers, and rotating
backups of the store file.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from dexstore.config import StoreSettings
from dexstore.storage.backup import BackupManager, BackupReport
from dexstore.storage.db import DexStore
from dexstore.storage.defaults import YamlDefaultData

logger = logging.getLogger(__name__)


def build_store(settings: StoreSettings) -> DexStore:
    """Construct (but do not open) the store handle described by settings."""
    default_data = YamlDefaultData(settings.default_data_path) if settings.default_data_path else None
    return DexStore(
        settings.db_path,
        busy_timeout_ms=settings.busy_timeout_ms,
        default_data=default_data,
    )


@dataclass
class ExpiryResult:
    now: int
    sell_deleted: int = 0
    buy_deleted: int = 0
    my_offers_expired: int = 0


@dataclass
class MaintenanceSummary:
    expiry: Optional[ExpiryResult] = None
    backup: BackupReport = field(default_factory=BackupReport)
    duration_seconds: float = 0.0


class MaintenanceRunner:
    """Runs maintenance jobs against a shared store handle.

    Usage:
        runner = MaintenanceRunner(store, settings)
        summary = runner.run_all()
    """

    def __init__(self, store: DexStore, settings: StoreSettings):
        self.store = store
        self.settings = settings
        self.backups = BackupManager(settings.db_path, settings.backups_dir, store=store)

    def expire_offers(self, now: Optional[int] = None) -> ExpiryResult:
        current = int(time.time()) if now is None else int(now)
        result = ExpiryResult(now=current)
        with self.store:
            result.sell_deleted = self.store.offers_sell.delete_expired(current)
            result.buy_deleted = self.store.offers_buy.delete_expired(current)
            result.my_offers_expired = self.store.my_offers.set_expired_status(current)
        logger.info(
            "Expiry at %d: %d sell, %d buy deleted; %d own offers expired",
            current,
            result.sell_deleted,
            result.buy_deleted,
            result.my_offers_expired,
        )
        return result

    def rotate_backups(self, when: Optional[datetime] = None) -> BackupReport:
        report = self.backups.auto_backup(self.settings.backups_to_keep, now=when)
        if report.success:
            logger.info("Backup written: %s (%d old removed)", report.backup_path, len(report.removed))
        return report

    def run_all(self, now: Optional[int] = None) -> MaintenanceSummary:
        t0 = time.monotonic()
        summary = MaintenanceSummary()
        summary.expiry = self.expire_offers(now)
        when = datetime.fromtimestamp(now) if now is not None else None
        summary.backup = self.rotate_backups(when)
        summary.duration_seconds = time.monotonic() - t0
        return summary
