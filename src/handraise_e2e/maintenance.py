"""
Artifact retention for screenshots, logs and run reports.

This module handles:
- Deleting artifact files older than the retention window (default 7 days)
- Reporting what was removed so the server and CLI can log it
"""

import logging
import time
from typing import Any, Dict, Optional

from handraise_e2e.runner.artifacts import ARTIFACT_SUBDIRS, ArtifactStore

logger = logging.getLogger(__name__)

# Constants
DEFAULT_RETENTION_DAYS = 7  # Delete artifacts older than this
SECONDS_PER_DAY = 24 * 60 * 60


def cleanup_old_artifacts(store: ArtifactStore, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
    """
    Delete artifact files whose modification time is older than the retention window.

    Only regular files directly under screenshots/, logs/ and reports/ are
    considered; anything else under the artifact root is left alone.

    Args:
        store: Artifact store owning the artifact root
        retention_days: Files older than this many days are deleted

    Returns:
        Number of deleted files
    """
    if not store.root.exists():
        logger.info(f"Artifact root {store.root} does not exist, nothing to clean")
        return 0

    cutoff = time.time() - retention_days * SECONDS_PER_DAY
    deleted = 0

    for name in ARTIFACT_SUBDIRS:
        directory = store.subdir(name)
        if not directory.is_dir():
            continue
        for path in directory.iterdir():
            if not path.is_file():
                continue
            if path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
                logger.debug(f"Deleted old artifact: {path.name}")

    if deleted:
        logger.info(f"Deleted {deleted} artifacts older than {retention_days} days")
    else:
        logger.info("No old artifacts to delete")
    return deleted


def run_maintenance(store: ArtifactStore, retention_days: Optional[int] = None) -> Dict[str, Any]:
    """
    Run the retention pass without letting failures escape.

    Args:
        store: Artifact store to clean
        retention_days: Retention window; DEFAULT_RETENTION_DAYS when None

    Returns:
        Dictionary with maintenance results
    """
    days = DEFAULT_RETENTION_DAYS if retention_days is None else retention_days
    results: Dict[str, Any] = {
        "deleted_count": 0,
        "retention_days": days,
        "success": False,
        "error": None,
    }

    try:
        results["deleted_count"] = cleanup_old_artifacts(store, days)
        results["success"] = True
    except OSError as e:
        logger.error(f"Artifact cleanup failed: {e}", exc_info=True)
        results["error"] = str(e)

    return results
