"""Control submodule: systemctl invocation for a single unit."""

from __future__ import annotations

from typing import List

from loguru import logger

from svcpanel.exceptions import CommandError

from .models import ServiceOperation
from .util import run_command

# `systemctl is-active` exits 3 when the unit is not active and still
# prints the state word on stdout.
IS_ACTIVE_NOT_ACTIVE_EXIT = 3


class SystemctlRunner:
    """Runs ``systemctl --user`` against exactly one unit.

    Callers must check the unit against the allowlist first; the runner
    does not. Nothing here retries: a failed stop may have partially
    taken effect on the host.
    """

    def __init__(self, systemctl_path: str = "systemctl", timeout: float = 30.0, limit: int = 65536):
        self.systemctl_path = systemctl_path
        self.timeout = timeout
        self.limit = limit

    def build_command(self, operation: ServiceOperation, unit: str) -> List[str]:
        return [self.systemctl_path, "--user", operation.value, unit]

    async def execute(self, operation: ServiceOperation, unit: str) -> str:
        """Run ``operation`` for ``unit`` and return its trimmed stdout.

        Raises CommandError (or CommandTimeoutError) on failure. The
        captured stderr is logged here and carried on the exception, but
        is not meant for HTTP clients.
        """
        command = self.build_command(operation, unit)
        result = await run_command(command, self.timeout, self.limit)
        output = result.stdout.strip()

        if result.exit_code == 0:
            return output

        if (
            operation is ServiceOperation.STATUS
            and result.exit_code == IS_ACTIVE_NOT_ACTIVE_EXIT
            and output
            and len(output.split()) == 1
        ):
            return output

        logger.error(
            "systemctl {} failed for {}: exit_code={} stderr={!r}",
            operation.value,
            unit,
            result.exit_code,
            result.stderr.strip(),
        )
        raise CommandError(
            f"systemctl {operation.value} {unit} exited with {result.exit_code}",
            command="systemctl",
            exit_code=result.exit_code,
            stderr=result.stderr,
        )
