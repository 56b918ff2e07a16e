"""Control submodule: dataclasses, operations and the service allowlist."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Iterator

from svcpanel.exceptions import ConfigurationError

UNIT_SUFFIX = ".service"

STATUS_ACTIVE = "active"
STATUS_ERROR = "error"
STATUS_NOT_ALLOWED = "not_allowed"


class ServiceOperation(str, Enum):
    """Operations the panel may run, valued by their systemctl subcommand."""

    STATUS = "is-active"
    START = "start"
    STOP = "stop"


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str
    stdout_truncated: bool
    stderr_truncated: bool


def normalize_unit(name: str) -> str:
    """Return ``name`` qualified with the ``.service`` suffix."""
    if name.endswith(UNIT_SUFFIX):
        return name
    return name + UNIT_SUFFIX


class Allowlist:
    """Fixed set of units the panel may control.

    Built once at startup and never mutated, so it is safe to read from
    concurrent requests without locking.
    """

    def __init__(self, services: Iterable[str]):
        units = []
        for service in services:
            if service is None or not service.strip():
                raise ConfigurationError("empty service name in ALLOWED_SERVICES")
            units.append(normalize_unit(service.strip()))
        if not units:
            raise ConfigurationError("ALLOWED_SERVICES must name at least one service")
        self._units: FrozenSet[str] = frozenset(units)

    def is_allowed(self, name: str) -> bool:
        return normalize_unit(name) in self._units

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_allowed(name)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._units))

    def __len__(self) -> int:
        return len(self._units)

    def __repr__(self) -> str:
        return f"Allowlist({sorted(self._units)!r})"
