"""Named environments holding shell variables."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

GLOBAL_ENV = "global"


class EnvRegistryError(Exception):
    """Raised on invalid environment operations."""
    pass


class EnvVarTable:
    """Thread-safe mapping of variable names to values."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._lock = Lock()
        self._vars: Dict[str, str] = dict(initial or {})

    def set(self, name: str, value: str) -> None:
        with self._lock:
            self._vars[name] = value

    def get(self, name: str) -> str:
        """Value of ``name``, or the empty string when unset."""
        with self._lock:
            return self._vars.get(name, "")

    def unset(self, name: str) -> None:
        with self._lock:
            self._vars.pop(name, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._vars)

    def lines(self) -> List[str]:
        """Variables rendered as sorted ``name=value`` lines."""
        return sorted(f"{k}={v}" for k, v in self.snapshot().items())


class EnvironmentRegistry:
    """Named environments, one of which is selected at any time."""

    def __init__(self):
        self._lock = Lock()
        self._envs: Dict[str, EnvVarTable] = {GLOBAL_ENV: EnvVarTable()}
        self._current = GLOBAL_ENV

    @property
    def current_name(self) -> str:
        with self._lock:
            return self._current

    def current(self) -> EnvVarTable:
        """Variable table of the selected environment."""
        with self._lock:
            return self._envs[self._current]

    def create(self, name: str) -> EnvVarTable:
        with self._lock:
            if name in self._envs:
                raise EnvRegistryError(f"Environment '{name}' already exists")
            table = self._envs[name] = EnvVarTable()
        logger.debug(f"Created environment {name}")
        return table

    def select(self, name: str) -> EnvVarTable:
        with self._lock:
            if name not in self._envs:
                raise EnvRegistryError(f"Environment '{name}' does not exist")
            self._current = name
            return self._envs[name]

    def delete(self, name: str) -> None:
        with self._lock:
            if name == GLOBAL_ENV:
                raise EnvRegistryError("Can't delete the global environment")
            if name == self._current:
                raise EnvRegistryError(f"Can't delete the selected environment '{name}'")
            if self._envs.pop(name, None) is None:
                raise EnvRegistryError(f"Environment '{name}' does not exist")
        logger.debug(f"Deleted environment {name}")

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._envs)
