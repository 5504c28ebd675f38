"""Shell configuration.

Parses and validates an optional YAML settings file, then applies
environment-variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path.home() / ".kubedsh.yaml"


class ImagesConfig(BaseModel):
    """Container images used to run each kind of program."""
    python: str = "python:3.12-alpine"
    node: str = "node:20-alpine"
    ruby: str = "ruby:3.3-alpine"
    binary: str = "alpine:3.20"

    def for_interpreter(self, interpreter: Optional[str]) -> str:
        """Image for an interpreter name, or the binary image for ``None``."""
        if interpreter is None:
            return self.binary
        return getattr(self, interpreter)


class KubedshConfig(BaseModel):
    """Top-level configuration."""
    kubectl_binary: str = "kubectl"
    debug: bool = False
    gc_interval: float = 30.0
    watchdog_interval: float = 2.0
    restart_delay: float = 5.0
    endpoint_port: int = 80
    images: ImagesConfig = Field(default_factory=ImagesConfig)

    @field_validator('gc_interval', 'watchdog_interval', 'restart_delay')
    @classmethod
    def positive_interval(cls, v: float) -> float:
        """Reject intervals that would spin the background loops."""
        if v <= 0:
            raise ValueError(f"Interval must be positive, got {v}")
        return v

    @field_validator('endpoint_port')
    @classmethod
    def valid_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> KubedshConfig:
    """Load configuration.

    Args:
        config_path: YAML file to read; when None, ``~/.kubedsh.yaml`` is
            used if it exists
        environ: Environment to read overrides from (default: os.environ)

    Returns:
        Validated configuration

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If validation fails
    """
    if environ is None:
        environ = os.environ

    raw: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
    else:
        path = DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None

    if path is not None:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    if environ.get("KUBEDSH_DEBUG"):
        raw["debug"] = True
    if environ.get("KUBECTL_BINARY"):
        raw["kubectl_binary"] = environ["KUBECTL_BINARY"]

    return KubedshConfig(**raw)
