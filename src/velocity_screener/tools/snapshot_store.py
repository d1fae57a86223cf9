"""
Snapshot Store
Velocity Momentum Screener

JSON persistence of the capped top-N snapshot summary written after each
scan. The background path is fire-and-forget: it runs on a daemon thread,
logs failures and never affects the scan's return value.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from velocity_screener.exceptions import SnapshotWriteError
from velocity_screener.schemas.screener_output import SnapshotSummary

logger = logging.getLogger(__name__)


def snapshot_filename(summary: SnapshotSummary) -> str:
    return f"snapshot_{summary.mode}_{summary.created_at.strftime('%Y%m%d_%H%M%S_%f')}.json"


def save_snapshot(summary: SnapshotSummary, directory: Path) -> Path:
    """
    Write the summary as JSON and return its path.

    Raises:
        SnapshotWriteError: The directory or file could not be written.
    """
    directory = Path(directory)
    path = directory / snapshot_filename(summary)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(summary.model_dump_json(indent=2), encoding="utf-8")
    except OSError as e:
        raise SnapshotWriteError(f"Could not write snapshot {path}: {e}") from e
    logger.info(
        f"[Snapshot] Saved {len(summary.top_signals)} signals "
        f"({summary.total_scanned} scanned) to {path}"
    )
    return path


def save_snapshot_async(summary: SnapshotSummary, directory: Path) -> threading.Thread:
    """
    Persist the summary on a daemon thread.

    Returns the started thread so callers (and tests) may join it; the scan
    itself never waits on it.
    """

    def _write() -> None:
        try:
            save_snapshot(summary, directory)
        except SnapshotWriteError as e:
            logger.error(f"[Snapshot] Background save failed: {e}")

    thread = threading.Thread(target=_write, daemon=True, name="SnapshotWriter")
    thread.start()
    return thread


def load_snapshot(path: Path) -> Optional[SnapshotSummary]:
    """Read a saved summary back; None when the file is missing."""
    path = Path(path)
    if not path.exists():
        return None
    return SnapshotSummary.model_validate_json(path.read_text(encoding="utf-8"))
