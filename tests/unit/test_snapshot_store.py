"""
Tests for the Snapshot Store.
Level 2: Filesystem (tmp_path) and the background writer thread.
"""

import logging
from datetime import datetime
from unittest.mock import patch

import pytest

from velocity_screener.exceptions import SnapshotWriteError
from velocity_screener.schemas.screener_output import PipelineFunnel, Signal, SnapshotEntry, SnapshotSummary
from velocity_screener.tools.snapshot_store import (
    load_snapshot,
    save_snapshot,
    save_snapshot_async,
    snapshot_filename,
)


def _summary(n_signals=2):
    entries = [
        SnapshotEntry(
            symbol=f"S{i}", name=f"Stock {i}", sector="Banking", signal=Signal.BUY,
            overall_score=70 - i, entry_price=100.0, stop_loss=95.0, target=110.0,
            risk_reward_ratio=2.0,
        )
        for i in range(n_signals)
    ]
    return SnapshotSummary(
        created_at=datetime(2025, 1, 2, 15, 30, 0, 123456),
        mode="demo",
        regime="BULL",
        total_scanned=10,
        signal_counts={"STRONG_BUY": 0, "BUY": n_signals, "WATCH": 0, "NEUTRAL": 5, "AVOID": 5 - n_signals},
        pipeline=PipelineFunnel(total_scanned=10, phase1=8, phase2=5, phase3=4, phase4=3, phase5=2),
        top_signals=entries,
    )


class TestSnapshotStore:

    @pytest.mark.integration
    def test_filename(self):
        assert snapshot_filename(_summary()) == "snapshot_demo_20250102_153000_123456.json"

    @pytest.mark.integration
    def test_save_and_load(self, tmp_path):
        summary = _summary()
        path = save_snapshot(summary, tmp_path / "nested" / "snaps")
        assert path.exists()
        assert load_snapshot(path) == summary

    @pytest.mark.integration
    def test_load_missing(self, tmp_path):
        assert load_snapshot(tmp_path / "nope.json") is None

    @pytest.mark.integration
    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(SnapshotWriteError):
            save_snapshot(_summary(), blocker / "sub")

    @pytest.mark.integration
    def test_async_writes_on_daemon_thread(self, tmp_path):
        thread = save_snapshot_async(_summary(), tmp_path)
        assert thread.daemon
        assert thread.name == "SnapshotWriter"
        thread.join(timeout=5.0)
        assert len(list(tmp_path.glob("snapshot_demo_*.json"))) == 1

    @pytest.mark.integration
    def test_async_failure_logged_not_raised(self, tmp_path, caplog):
        with patch(
            "velocity_screener.tools.snapshot_store.save_snapshot",
            side_effect=SnapshotWriteError("disk full"),
        ):
            with caplog.at_level(logging.ERROR):
                thread = save_snapshot_async(_summary(), tmp_path)
                thread.join(timeout=5.0)
        assert "Background save failed: disk full" in caplog.text
