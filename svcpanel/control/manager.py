"""Control submodule: ServiceManager business logic."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Protocol

from loguru import logger

from svcpanel.exceptions import CommandError
from svcpanel.responses import ServiceStatus

from .models import (
    STATUS_ACTIVE,
    STATUS_ERROR,
    STATUS_NOT_ALLOWED,
    Allowlist,
    ServiceOperation,
    normalize_unit,
)


class CommandRunner(Protocol):
    async def execute(self, operation: ServiceOperation, unit: str) -> str: ...


def make_status(name: str, status: str) -> ServiceStatus:
    return ServiceStatus(name=name, status=status, active=status == STATUS_ACTIVE)


class ServiceManager:
    """Allowlist-guarded start/stop/status of systemd user services.

    Every public method returns a ServiceStatus and never raises for
    command failures: a unit outside the allowlist is reported as
    ``not_allowed`` without running anything, and a failed or timed out
    command is reported as ``error``.
    """

    def __init__(
        self,
        allowlist: Allowlist,
        runner: CommandRunner,
        *,
        serialize_operations: bool = False,
    ):
        self.allowlist = allowlist
        self.runner = runner
        self._locks: Optional[Dict[str, asyncio.Lock]] = None
        if serialize_operations:
            self._locks = {unit: asyncio.Lock() for unit in allowlist}

    @asynccontextmanager
    async def _exclusive(self, unit: str) -> AsyncIterator[None]:
        if self._locks is None:
            yield
            return
        async with self._locks[unit]:
            yield

    async def status_of(self, name: str) -> ServiceStatus:
        unit = normalize_unit(name)
        if not self.allowlist.is_allowed(unit):
            logger.warning("Attempted to check status of non-allowed service {}", unit)
            return make_status(unit, STATUS_NOT_ALLOWED)
        return await self._query(unit)

    async def _query(self, unit: str) -> ServiceStatus:
        try:
            output = await self.runner.execute(ServiceOperation.STATUS, unit)
        except CommandError as exc:
            logger.error("Failed to get status for {}: {}", unit, exc)
            return make_status(unit, STATUS_ERROR)
        return make_status(unit, output)

    async def _control(self, operation: ServiceOperation, name: str) -> ServiceStatus:
        unit = normalize_unit(name)
        if not self.allowlist.is_allowed(unit):
            logger.warning("Attempted to {} non-allowed service {}", operation.value, unit)
            return make_status(unit, STATUS_NOT_ALLOWED)

        async with self._exclusive(unit):
            try:
                await self.runner.execute(operation, unit)
            except CommandError as exc:
                logger.error("Failed to {} {}: {}", operation.value, unit, exc)
                return make_status(unit, STATUS_ERROR)
            return await self._query(unit)

    async def start(self, name: str) -> ServiceStatus:
        return await self._control(ServiceOperation.START, name)

    async def stop(self, name: str) -> ServiceStatus:
        return await self._control(ServiceOperation.STOP, name)

    async def status_of_all(self) -> List[ServiceStatus]:
        """Query every allowlisted unit concurrently.

        Order follows the allowlist iteration and is not part of the
        contract.
        """
        return list(await asyncio.gather(*(self._query(unit) for unit in self.allowlist)))
