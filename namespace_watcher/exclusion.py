"""Decides which namespaces are left without a LimitRange."""

import os
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Mapping, Optional

from .config import EXCLUDED_NAMESPACES_ENV, RESERVED_NAMESPACES, RESERVED_SUBSTRING
from .utils import split_namespace_list


@dataclass(frozen=True)
class ExclusionFilter:
    """Reserved namespaces, the operator's extra list and a substring rule."""
    excluded: FrozenSet[str] = RESERVED_NAMESPACES
    substring: str = RESERVED_SUBSTRING

    @classmethod
    def from_names(cls, extra: Iterable[str] = ()) -> "ExclusionFilter":
        return cls(excluded=RESERVED_NAMESPACES | frozenset(extra))

    @classmethod
    def from_string(cls, raw: Optional[str]) -> "ExclusionFilter":
        """Build from a comma-separated list such as "team-x, sandbox"."""
        return cls.from_names(split_namespace_list(raw))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "ExclusionFilter":
        if environ is None:
            environ = os.environ
        return cls.from_string(environ.get(EXCLUDED_NAMESPACES_ENV))

    def should_exclude(self, name: str) -> bool:
        """
        True if the namespace contains the reserved substring anywhere,
        or exactly matches a reserved or operator-listed name.
        """
        if self.substring and self.substring in name:
            return True
        return name in self.excluded
