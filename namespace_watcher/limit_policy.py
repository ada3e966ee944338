"""Pod-scope limit policy applied to every watched namespace."""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Mapping

from kubernetes import client

from .config import (
    CPU_LIMIT_MIN_ENV,
    CPU_LIMIT_MAX_ENV,
    MEM_LIMIT_MIN_ENV,
    MEM_LIMIT_MAX_ENV,
    EPHEMERAL_STORAGE_MIN_ENV,
    EPHEMERAL_STORAGE_MAX_ENV,
    LIMIT_TYPE,
)
from .exceptions import ConfigurationError
from .utils import parse_limit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimitPolicy:
    """
    Six pod-scope quantities, kept as the strings the operator supplied.

    Values are validated on construction through from_env(); building one
    directly skips validation, which is what the tests rely on.
    """
    cpu_min: str
    cpu_max: str
    mem_min: str
    mem_max: str
    ephemeral_min: str
    ephemeral_max: str

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "LimitPolicy":
        """
        Load the policy from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            The validated LimitPolicy

        Raises:
            ConfigurationError: if any value is missing, empty, unparseable,
                zero, or if a minimum exceeds its maximum
        """
        if environ is None:
            environ = os.environ

        pairs = (
            ("cpu", CPU_LIMIT_MIN_ENV, CPU_LIMIT_MAX_ENV),
            ("memory", MEM_LIMIT_MIN_ENV, MEM_LIMIT_MAX_ENV),
            ("ephemeral-storage", EPHEMERAL_STORAGE_MIN_ENV, EPHEMERAL_STORAGE_MAX_ENV),
        )

        values = {}
        for resource, min_env, max_env in pairs:
            min_quantity = parse_limit(min_env, environ.get(min_env))
            max_quantity = parse_limit(max_env, environ.get(max_env))
            if min_quantity > max_quantity:
                raise ConfigurationError(
                    f"{min_env}={environ[min_env].strip()} exceeds "
                    f"{max_env}={environ[max_env].strip()} for {resource}"
                )
            values[min_env] = environ[min_env].strip()
            values[max_env] = environ[max_env].strip()

        policy = cls(
            cpu_min=values[CPU_LIMIT_MIN_ENV],
            cpu_max=values[CPU_LIMIT_MAX_ENV],
            mem_min=values[MEM_LIMIT_MIN_ENV],
            mem_max=values[MEM_LIMIT_MAX_ENV],
            ephemeral_min=values[EPHEMERAL_STORAGE_MIN_ENV],
            ephemeral_max=values[EPHEMERAL_STORAGE_MAX_ENV],
        )
        logger.info(f"Loaded limit policy: {policy.describe()}")
        return policy

    @property
    def max(self) -> Dict[str, str]:
        return {
            "cpu": self.cpu_max,
            "memory": self.mem_max,
            "ephemeral-storage": self.ephemeral_max,
        }

    @property
    def min(self) -> Dict[str, str]:
        return {
            "cpu": self.cpu_min,
            "memory": self.mem_min,
            "ephemeral-storage": self.ephemeral_min,
        }

    def describe(self) -> str:
        """One-line summary for logging."""
        return (
            f"{CPU_LIMIT_MIN_ENV}={self.cpu_min} {CPU_LIMIT_MAX_ENV}={self.cpu_max} "
            f"{MEM_LIMIT_MIN_ENV}={self.mem_min} {MEM_LIMIT_MAX_ENV}={self.mem_max} "
            f"{EPHEMERAL_STORAGE_MIN_ENV}={self.ephemeral_min} "
            f"{EPHEMERAL_STORAGE_MAX_ENV}={self.ephemeral_max}"
        )

    def to_limit_range_spec(self) -> client.V1LimitRangeSpec:
        """Build the LimitRange spec: a single Pod-scope item."""
        return client.V1LimitRangeSpec(
            limits=[
                client.V1LimitRangeItem(
                    type=LIMIT_TYPE,
                    max=self.max,
                    min=self.min,
                )
            ]
        )
