"""Tests for maintenance module - artifact retention."""

import os
import time
from unittest.mock import patch

from handraise_e2e.maintenance import (
    DEFAULT_RETENTION_DAYS,
    SECONDS_PER_DAY,
    cleanup_old_artifacts,
    run_maintenance,
)
from handraise_e2e.runner.artifacts import ArtifactStore


def _make_file(path, age_days):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    mtime = time.time() - age_days * SECONDS_PER_DAY
    os.utime(path, (mtime, mtime))
    return path


class TestCleanupOldArtifacts:
    """Tests for cleanup_old_artifacts()."""

    def test_deletes_old_keeps_young(self, tmp_path):
        store = ArtifactStore(tmp_path)
        old_png = _make_file(tmp_path / "screenshots" / "Load_old_failure.png", 8)
        old_log = _make_file(tmp_path / "logs" / "Load_old_error.log", 30)
        old_report = _make_file(tmp_path / "reports" / "Load_old.json", 8)
        young = _make_file(tmp_path / "logs" / "Load_new_page.html", 6)

        deleted = cleanup_old_artifacts(store, 7)

        assert deleted == 3
        assert not old_png.exists()
        assert not old_log.exists()
        assert not old_report.exists()
        assert young.exists()

    def test_ignores_files_outside_artifact_dirs(self, tmp_path):
        store = ArtifactStore(tmp_path)
        stray = _make_file(tmp_path / "notes.txt", 100)
        nested = _make_file(tmp_path / "logs" / "archive" / "old.log", 100)

        assert cleanup_old_artifacts(store, 7) == 0
        assert stray.exists()
        assert nested.exists()

    def test_missing_root(self, tmp_path):
        assert cleanup_old_artifacts(ArtifactStore(tmp_path / "missing"), 7) == 0

    def test_custom_window(self, tmp_path):
        store = ArtifactStore(tmp_path)
        file = _make_file(tmp_path / "logs" / "a.log", 2)

        assert cleanup_old_artifacts(store, 1) == 1
        assert not file.exists()


class TestRunMaintenance:
    """Tests for run_maintenance()."""

    def test_success(self, tmp_path):
        store = ArtifactStore(tmp_path)
        _make_file(tmp_path / "logs" / "a.log", 10)

        results = run_maintenance(store)

        assert results == {
            "deleted_count": 1,
            "retention_days": DEFAULT_RETENTION_DAYS,
            "success": True,
            "error": None,
        }

    def test_failure_reported(self, tmp_path):
        store = ArtifactStore(tmp_path)

        with patch(
            "handraise_e2e.maintenance.cleanup_old_artifacts",
            side_effect=PermissionError("read-only file system"),
        ):
            results = run_maintenance(store, 3)

        assert results["success"] is False
        assert results["retention_days"] == 3
        assert results["error"] == "read-only file system"
