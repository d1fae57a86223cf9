"""
Market Data Fetch Lock
Velocity Momentum Screener

The market-data provider rate-limits per credential, so every live fetch
runs under one process-wide lock:
- blocking acquire with a caller-supplied timeout
- first-in-first-out wake order among waiters
- holders older than the stale ceiling are treated as abandoned and
  force-released
- ``hold()`` always releases, whether the fetch succeeded or not, and only
  its own hold: once a stale hold has been force-released and re-acquired,
  the late release of the old holder is a no-op

The lock guards the fetch only, never the (pure) screener pipeline.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from velocity_screener.config.constants import (
    LOCK_DEFAULT_TIMEOUT_SECONDS,
    LOCK_STALE_AFTER_SECONDS,
)
from velocity_screener.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class FetchLock:
    """FIFO mutual-exclusion lock with timeout and stale-holder release."""

    def __init__(
        self,
        stale_after: float = LOCK_STALE_AFTER_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cond = threading.Condition()
        self._waiters: deque = deque()
        self._tickets = itertools.count(1)
        self._holder: Optional[str] = None
        self._token: Optional[int] = None
        self._acquired_at: Optional[float] = None
        self._stale_after = stale_after
        self._clock = clock

    # -- internals (call with self._cond held) ------------------------------

    def _release_if_stale(self) -> None:
        if self._holder is None or self._acquired_at is None:
            return
        held_for = self._clock() - self._acquired_at
        if held_for >= self._stale_after:
            logger.warning(
                f"[FetchLock] Force-releasing stale lock held by '{self._holder}' for {held_for:.0f}s"
            )
            self._clear()

    def _clear(self) -> None:
        self._holder = None
        self._token = None
        self._acquired_at = None
        self._cond.notify_all()

    def _wait_slice(self, remaining: float) -> float:
        if self._holder is None or self._acquired_at is None:
            return remaining
        until_stale = self._acquired_at + self._stale_after - self._clock()
        return max(min(remaining, until_stale), 0.001)

    # -- public API ---------------------------------------------------------

    def acquire(self, owner: str, timeout: float = LOCK_DEFAULT_TIMEOUT_SECONDS) -> Optional[int]:
        """
        Block until the lock is free and this caller is first in line.

        Returns:
            A token identifying this hold (pass it to ``release``), or None
            if ``timeout`` seconds passed first.
        """
        ticket = next(self._tickets)
        deadline = self._clock() + timeout

        with self._cond:
            self._waiters.append(ticket)
            try:
                while True:
                    self._release_if_stale()
                    if self._holder is None and self._waiters[0] == ticket:
                        self._waiters.popleft()
                        self._holder = owner
                        self._token = ticket
                        self._acquired_at = self._clock()
                        logger.debug(f"[FetchLock] Acquired by '{owner}' (token {ticket})")
                        return ticket

                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        self._waiters.remove(ticket)
                        # The next waiter may now be at the head of the queue.
                        self._cond.notify_all()
                        logger.warning(
                            f"[FetchLock] '{owner}' timed out after {timeout:.1f}s "
                            f"(held by '{self._holder}')"
                        )
                        return None

                    self._cond.wait(self._wait_slice(remaining))
            except BaseException:
                if ticket in self._waiters:
                    self._waiters.remove(ticket)
                    self._cond.notify_all()
                raise

    def release(self, owner: Optional[str] = None, token: Optional[int] = None) -> bool:
        """
        Release the lock.

        Args:
            owner: When given, only that holder may release.
            token: When given, only the hold that ``acquire`` returned it
                for may release; a hold that was force-released as stale
                and taken over by another caller is left alone.

        Returns:
            True if the lock was released by this call.
        """
        with self._cond:
            if self._holder is None:
                if token is not None:
                    logger.warning(f"[FetchLock] Token {token} released after its hold went stale")
                return False
            if token is not None and token != self._token:
                logger.warning(
                    f"[FetchLock] Token {token} no longer holds the lock "
                    f"(held by '{self._holder}', token {self._token})"
                )
                return False
            if owner is not None and owner != self._holder:
                logger.warning(
                    f"[FetchLock] '{owner}' tried to release lock held by '{self._holder}'"
                )
                return False
            logger.debug(f"[FetchLock] Released by '{self._holder}'")
            self._clear()
            return True

    @contextmanager
    def hold(self, owner: str, timeout: float = LOCK_DEFAULT_TIMEOUT_SECONDS) -> Iterator[int]:
        """
        Context manager around a fetch; yields the hold's token.

        Raises:
            LockTimeoutError: The lock could not be acquired within ``timeout``.
        """
        token = self.acquire(owner, timeout)
        if token is None:
            raise LockTimeoutError(
                f"{owner} timed out after {timeout:.1f}s waiting for the market data lock"
            )
        try:
            yield token
        finally:
            self.release(owner, token=token)

    def status(self) -> dict:
        """Current holder, hold duration and queue depth."""
        with self._cond:
            self._release_if_stale()
            held_for = (
                round(self._clock() - self._acquired_at, 3)
                if self._acquired_at is not None else None
            )
            return {
                "locked": self._holder is not None,
                "holder": self._holder,
                "held_for_seconds": held_for,
                "waiting": len(self._waiters),
            }


market_data_lock = FetchLock()
"""Shared lock for all live market-data fetches in this process"""
