"""Utility functions for quantity parsing and comparison."""

import json
from decimal import Decimal
from typing import Dict, List, Optional

from kubernetes.utils import parse_quantity

from .exceptions import ConfigurationError


def parse_limit(name: str, raw: Optional[str]) -> Decimal:
    """
    Parse and validate a single limit value.

    Examples:
        "100m" -> Decimal("0.1")
        "128Mi" -> Decimal("134217728")
        "1G" -> Decimal("1000000000")

    Raises:
        ConfigurationError: if the value is missing, empty, unparseable,
            zero, negative or not finite
    """
    if raw is None:
        raise ConfigurationError(f"{name} is not set")

    value = str(raw).strip()
    if not value:
        raise ConfigurationError(f"{name} is empty")

    try:
        quantity = parse_quantity(value)
    except ValueError as e:
        raise ConfigurationError(f"{name}={value!r} is not a valid quantity: {e}") from e

    if not quantity.is_finite():
        raise ConfigurationError(f"{name}={value!r} is not a finite quantity")
    if quantity == 0:
        raise ConfigurationError(f"{name}={value!r} must not be zero")
    if quantity < 0:
        raise ConfigurationError(f"{name}={value!r} must not be negative")

    return quantity


def split_namespace_list(raw: Optional[str]) -> List[str]:
    """
    Split a comma-separated namespace list.

    Examples:
        "team-x, team-y" -> ["team-x", "team-y"]
        " ,a,," -> ["a"]
    """
    if not raw:
        return []
    return [entry.strip() for entry in raw.split(",") if entry.strip()]


def resource_lists_match(actual: Optional[Dict[str, str]], desired: Dict[str, str]) -> bool:
    """
    Compare two resource lists by parsed quantity, so "1Gi" equals "1024Mi".
    """
    actual = actual or {}
    if set(actual) != set(desired):
        return False

    for resource, desired_value in desired.items():
        try:
            if parse_quantity(actual[resource]) != parse_quantity(desired_value):
                return False
        except ValueError:
            return False
    return True


def serialize_resources(resources: Dict) -> str:
    """Serialize a resources dict for log lines."""
    return json.dumps(resources, sort_keys=True)
