"""Tests for timestamped backups and retention."""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime

import pytest

from dexstore.storage.backup import BackupManager
from dexstore.storage.db import DexStore

WHEN = datetime(2026, 3, 4, 5, 6)


# --- Fixtures ---

@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "dex.db")
    with DexStore(path) as store:
        store.filters.add("kept")
    return path


@pytest.fixture
def backups_dir(tmp_path):
    path = tmp_path / "backups"
    path.mkdir()
    return path


def make_old_backups(backups_dir, count: int):
    """Create `count` stale backups with increasing modification times."""
    paths = []
    for i in range(count):
        path = backups_dir / f"dex.db.2020-01-0{i + 1}-00-00"
        path.write_bytes(b"old")
        os.utime(path, (1_000_000 + i, 1_000_000 + i))
        paths.append(path)
    return paths


def filters_in(path: str):
    conn = sqlite3.connect(path)
    try:
        return [r[0] for r in conn.execute("SELECT filter FROM filterList").fetchall()]
    finally:
        conn.close()


class TestBackupName:
    def test_name_format(self, db_path, backups_dir):
        manager = BackupManager(db_path, str(backups_dir))
        assert manager.backup_name(WHEN) == "dex.db.2026-03-04-05-06"

    def test_existing_backups_match_store_name(self, db_path, backups_dir):
        old = make_old_backups(backups_dir, 2)
        (backups_dir / "other.db.2020-01-01-00-00").write_bytes(b"x")
        (backups_dir / "dex.db").write_bytes(b"x")

        manager = BackupManager(db_path, str(backups_dir))
        assert manager.existing_backups() == old


class TestAutoBackup:
    def test_disabled(self, db_path, backups_dir):
        report = BackupManager(db_path, str(backups_dir)).auto_backup(0, now=WHEN)
        assert not report.success
        assert not report.error
        assert list(backups_dir.iterdir()) == []

    def test_missing_directory(self, db_path, tmp_path):
        report = BackupManager(db_path, str(tmp_path / "nowhere")).auto_backup(3, now=WHEN)
        assert not report.success
        assert "not found" in report.error

    def test_file_copy_when_closed(self, db_path, backups_dir):
        report = BackupManager(db_path, str(backups_dir)).auto_backup(3, now=WHEN)
        assert report.success
        assert report.backup_path == str(backups_dir / "dex.db.2026-03-04-05-06")
        assert filters_in(report.backup_path) == ["kept"]

    def test_hot_backup_when_open(self, db_path, backups_dir):
        store = DexStore(db_path)
        with store:
            store.filters.add("live")
            report = BackupManager(db_path, str(backups_dir), store=store).auto_backup(3, now=WHEN)
        assert report.success
        assert sorted(filters_in(report.backup_path)) == ["kept", "live"]

    def test_existing_timestamp_is_not_overwritten(self, db_path, backups_dir):
        target = backups_dir / "dex.db.2026-03-04-05-06"
        target.write_bytes(b"earlier")

        report = BackupManager(db_path, str(backups_dir)).auto_backup(3, now=WHEN)
        assert not report.success
        assert "already exists" in report.warning
        assert target.read_bytes() == b"earlier"

    def test_missing_store_file(self, tmp_path, backups_dir):
        report = BackupManager(str(tmp_path / "absent.db"), str(backups_dir)).auto_backup(3, now=WHEN)
        assert not report.success
        assert report.warning

    def test_retention_keeps_newest(self, db_path, backups_dir):
        old = make_old_backups(backups_dir, 5)
        unrelated = backups_dir / "other.db.2020-01-01-00-00"
        unrelated.write_bytes(b"x")
        os.utime(unrelated, (1, 1))

        report = BackupManager(db_path, str(backups_dir)).auto_backup(3, now=WHEN)

        assert report.success
        assert report.removed == [str(p) for p in old[:3]]
        remaining = sorted(p.name for p in backups_dir.iterdir())
        assert remaining == sorted([old[3].name, old[4].name, "dex.db.2026-03-04-05-06", unrelated.name])
