"""Poll driver: calls the engine on an interval and applies the failure budget."""

from __future__ import annotations

import logging
import signal
import threading
import time
from typing import Callable

from .engine import SyncEngine
from .errors import GitSyncError


def park_forever() -> int:
    """Block until SIGTERM or SIGINT, then return exit code 0.

    Used once the target is a fixed commit: exiting would make a supervisor
    restart a poller with nothing left to do.
    """
    stop = threading.Event()

    def _handler(signum, frame):
        stop.set()

    previous = {sig: signal.signal(sig, _handler) for sig in (signal.SIGTERM, signal.SIGINT)}
    try:
        while not stop.wait(timeout=3600):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


class PollDriver:
    """Runs :class:`SyncEngine` passes until done, parked, or out of budget."""

    def __init__(
        self,
        engine: SyncEngine,
        interval: float = 0,
        one_time: bool = False,
        max_failures: int = 0,
        sleep: Callable[[float], None] = time.sleep,
        park: Callable[[], int] = park_forever,
        logger: logging.Logger | None = None,
    ):
        self.engine = engine
        self.interval = interval
        self.one_time = one_time
        self.max_failures = max_failures
        self.sleep = sleep
        self.park = park
        self.log = logger or logging.getLogger(__name__)
        self.initial_sync = True
        self.fail_count = 0

    def step(self) -> int | None:
        """Run one pass. Returns an exit code when the loop should stop."""
        outcome = self.engine.sync()

        if not outcome.ok:
            if self.initial_sync or self.fail_count >= self.max_failures:
                self.log.error("error syncing repo: %s", outcome.error)
                return 1
            self.fail_count += 1
            self.log.error("unexpected error syncing repo: %s", outcome.error)
            self.log.info("waiting %ss before retrying", self.interval)
            return None

        if outcome.cleanup_error is not None:
            self.log.warning("synced, but old worktree was not reclaimed: %s", outcome.cleanup_error)

        if self.initial_sync:
            try:
                immutable = self.engine.is_immutable()
            except GitSyncError as e:
                self.log.error("can't tell if rev %s is a git hash, exiting: %s", self.engine.target.rev, e)
                return 1
            if immutable:
                self.log.info("rev %s appears to be a git hash, no further sync needed", self.engine.target.rev)
                return self.park()
            if self.one_time:
                return 0
            self.initial_sync = False

        self.fail_count = 0
        self.log.debug("next sync in %ss", self.interval)
        return None

    def run(self) -> int:
        while True:
            code = self.step()
            if code is not None:
                return code
            self.sleep(self.interval)
