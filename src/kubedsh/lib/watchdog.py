"""Hot-reload watchdog.

Polls the selected environment's variables and notifies subscribers when
their content changes.
"""

from __future__ import annotations

import hashlib
import json
import logging
from threading import Lock
from typing import Callable, Dict, List

from kubedsh.lib.environments import EnvVarTable

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[Dict[str, str]], None]


def fingerprint(variables: Dict[str, str]) -> str:
    """Compute a content hash of a variable set.

    Returns:
        SHA256 hex digest, independent of insertion order
    """
    hasher = hashlib.sha256()
    hasher.update(json.dumps(sorted(variables.items())).encode())
    return hasher.hexdigest()


class ReloadWatchdog:
    """Emits a reload signal when the watched variables change."""

    def __init__(self, table: EnvVarTable):
        self._lock = Lock()
        self._table = table
        self._fingerprint = fingerprint(table.snapshot())
        self._subscribers: List[ReloadCallback] = []

    def watch(self, table: EnvVarTable) -> None:
        """Watch a different variable table (e.g. after an environment switch)."""
        with self._lock:
            self._table = table

    def subscribe(self, callback: ReloadCallback) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def check(self) -> bool:
        """Compare the current fingerprint with the previous one.

        Returns:
            True if a reload signal was emitted
        """
        with self._lock:
            variables = self._table.snapshot()
            current = fingerprint(variables)
            if current == self._fingerprint:
                return False
            self._fingerprint = current
            subscribers = list(self._subscribers)

        logger.debug(f"Environment changed, signalling {len(subscribers)} consumers")
        for callback in subscribers:
            try:
                callback(variables)
            except Exception:
                logger.exception(f"Reload consumer {callback!r} failed")
        return True
