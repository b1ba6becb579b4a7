"""Artifact cleanup for video-converter."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger(__name__)


def remove_artifact(path: str | Path) -> bool:
    """
    Delete one artifact file, tolerating it being gone already.

    Returns:
        True if a file was removed
    """
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
        return False
    logger.debug(f"Removed artifact {path}")
    return True


def get_file_age_days(path: Path) -> float | None:
    """Age of a file in days based on its mtime, or None if unreadable."""
    try:
        return (time.time() - path.stat().st_mtime) / 86400.0
    except OSError as e:
        logger.warning(f"Failed to get age for {path}: {e}")
        return None


def job_id_for(path: Path) -> str:
    """Job artifacts are named ``<job id>.<ext>``."""
    return path.name.split(".", 1)[0]


def cleanup_expired_artifacts(
    work_dir: Path,
    retention_days: float,
    is_active: Callable[[str], bool] | None = None,
) -> dict[str, Any]:
    """
    Delete artifacts older than retention_days from work_dir.

    Files that belong to a pending or running job are skipped even when old,
    since yt-dlp may still be writing to them.

    Returns:
        Dictionary with cleanup statistics:
        {
            "success": True,
            "deleted_count": 5,
            "freed_bytes": 1234567890,
            "skipped_active": 1,
            "errors": [],
        }
    """
    work_dir = Path(work_dir)
    stats: dict[str, Any] = {
        "success": True,
        "deleted_count": 0,
        "freed_bytes": 0,
        "skipped_active": 0,
        "errors": [],
    }

    if not work_dir.exists():
        logger.info(f"Work directory does not exist: {work_dir}")
        return stats

    for path in work_dir.iterdir():
        if not path.is_file():
            continue

        age_days = get_file_age_days(path)
        if age_days is None or age_days <= retention_days:
            continue

        if is_active is not None and is_active(job_id_for(path)):
            logger.info(f"Skipped {path.name}: job still active")
            stats["skipped_active"] += 1
            continue

        try:
            size = path.stat().st_size
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Failed to delete {path}: {e}")
            stats["errors"].append({"file": path.name, "error": str(e)})
            continue

        logger.info(f"Deleted {path.name}: age {age_days:.2f} days")
        stats["deleted_count"] += 1
        stats["freed_bytes"] += size

    return stats
