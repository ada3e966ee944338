"""Configuration settings for the Namespace Watcher."""

import logging
import math
import os
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from typing import Mapping

from .exceptions import ConfigurationError

try:
    VERSION = version("namespace-watcher")
except PackageNotFoundError:
    VERSION = "0+unknown"

# Environment variables holding the pod-scope limits
CPU_LIMIT_MIN_ENV = "CPU_LIMIT_MIN"
CPU_LIMIT_MAX_ENV = "CPU_LIMIT_MAX"
MEM_LIMIT_MIN_ENV = "MEM_LIMIT_MIN"
MEM_LIMIT_MAX_ENV = "MEM_LIMIT_MAX"
EPHEMERAL_STORAGE_MIN_ENV = "EPHEMERAL_STORAGE_MIN"
EPHEMERAL_STORAGE_MAX_ENV = "EPHEMERAL_STORAGE_MAX"

# Comma-separated list of extra namespaces to leave alone
EXCLUDED_NAMESPACES_ENV = "EXCLUDED_NAMESPACES"

# LimitRange written into every watched namespace
LIMIT_RANGE_NAME = "default-limits"
LIMIT_TYPE = "Pod"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "namespace-watcher"

# Namespaces owned by the platform
RESERVED_NAMESPACES = frozenset({
    "default",
    "kube-system",
    "kube-public",
    "kube-node-lease",
    "kube-local",
    "istio-system",
})

# Any namespace containing this token is Rancher-managed
RESERVED_SUBSTRING = "cattle"

# Optional settings and their defaults
LOG_LEVEL_ENV = "LOG_LEVEL"
WATCH_TIMEOUT_SECONDS_ENV = "WATCH_TIMEOUT_SECONDS"
WATCH_QUEUE_SIZE_ENV = "WATCH_QUEUE_SIZE"
WATCH_BACKOFF_INITIAL_SECONDS_ENV = "WATCH_BACKOFF_INITIAL_SECONDS"
WATCH_BACKOFF_MAX_SECONDS_ENV = "WATCH_BACKOFF_MAX_SECONDS"

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_WATCH_TIMEOUT_SECONDS = 300
DEFAULT_WATCH_QUEUE_SIZE = 100
DEFAULT_WATCH_BACKOFF_INITIAL_SECONDS = 1.0
DEFAULT_WATCH_BACKOFF_MAX_SECONDS = 60.0

# Server-side timeout of the first watch opened at startup
SUBSCRIBE_TIMEOUT_SECONDS = 1

# Watch errors that retrying cannot fix
FATAL_WATCH_STATUSES = frozenset({401, 403})


@dataclass(frozen=True)
class WatchSettings:
    """Logging level and watch tunables."""
    log_level: str = DEFAULT_LOG_LEVEL
    watch_timeout: int = DEFAULT_WATCH_TIMEOUT_SECONDS
    queue_size: int = DEFAULT_WATCH_QUEUE_SIZE
    backoff_initial: float = DEFAULT_WATCH_BACKOFF_INITIAL_SECONDS
    backoff_max: float = DEFAULT_WATCH_BACKOFF_MAX_SECONDS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "WatchSettings":
        """
        Load the optional settings from environment variables.

        Raises:
            ConfigurationError: if a value is malformed or out of range
        """
        if environ is None:
            environ = os.environ

        log_level = (environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(f"{LOG_LEVEL_ENV}={log_level!r} is not a logging level")

        watch_timeout = _read_number(environ, WATCH_TIMEOUT_SECONDS_ENV, int, DEFAULT_WATCH_TIMEOUT_SECONDS)
        queue_size = _read_number(environ, WATCH_QUEUE_SIZE_ENV, int, DEFAULT_WATCH_QUEUE_SIZE)
        backoff_initial = _read_number(
            environ, WATCH_BACKOFF_INITIAL_SECONDS_ENV, float, DEFAULT_WATCH_BACKOFF_INITIAL_SECONDS
        )
        backoff_max = _read_number(environ, WATCH_BACKOFF_MAX_SECONDS_ENV, float, DEFAULT_WATCH_BACKOFF_MAX_SECONDS)

        if backoff_max < backoff_initial:
            raise ConfigurationError(
                f"{WATCH_BACKOFF_MAX_SECONDS_ENV}={backoff_max} is below "
                f"{WATCH_BACKOFF_INITIAL_SECONDS_ENV}={backoff_initial}"
            )

        return cls(
            log_level=log_level,
            watch_timeout=watch_timeout,
            queue_size=queue_size,
            backoff_initial=backoff_initial,
            backoff_max=backoff_max,
        )


def _read_number(environ: Mapping[str, str], name: str, kind, default):
    """Read a positive int or float, falling back to the default when unset."""
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = kind(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name}={raw!r} is not a valid {kind.__name__}") from e
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name}={raw!r} must be a finite number greater than zero")
    return value
