"""Supervised background loops."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SupervisedLoop:
    """Runs ``step`` periodically on a daemon thread.

    An exception raised by ``step`` is logged and the loop resumes after
    ``restart_delay`` seconds, so one failed cycle never stops the loop.
    """

    def __init__(
        self,
        name: str,
        step: Callable[[], object],
        interval: float,
        restart_delay: float = 5.0
    ):
        """Initialize loop.

        Args:
            name: Name used for the thread and in log messages
            step: Callable executed once per cycle
            interval: Seconds between successful cycles
            restart_delay: Seconds to wait after a failed cycle
        """
        self.name = name
        self.step = step
        self.interval = interval
        self.restart_delay = restart_delay
        self.failures = 0
        self._stop = Event()
        self._thread: Optional[Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug(f"Started {self.name} (interval={self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.debug(f"Stopped {self.name}")

    def run_once(self) -> bool:
        """Execute one cycle.

        Returns:
            True if the step completed without raising
        """
        try:
            self.step()
        except Exception:
            self.failures += 1
            logger.exception(f"{self.name} cycle failed, restarting in {self.restart_delay}s")
            return False
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            delay = self.interval if self.run_once() else self.restart_delay
            self._stop.wait(delay)
