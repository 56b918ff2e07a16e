from typing import Optional


class PanelError(Exception):
    """Base class for service control panel errors."""


class ConfigurationError(PanelError):
    """Invalid startup configuration; the process must not start."""


class CommandError(PanelError):
    """The service manager command failed or could not be run."""

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        exit_code: Optional[int] = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class CommandTimeoutError(CommandError):
    """The service manager command exceeded its deadline and was killed."""
