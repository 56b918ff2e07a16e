import sys
from typing import Optional

import typer
from loguru import logger
from pydantic import ValidationError

from svcpanel import __version__
from svcpanel.config import PanelConfig
from svcpanel.exceptions import ConfigurationError
from svcpanel.logging_config import configure_logging

app = typer.Typer(add_completion=False)


def _version_callback(value: bool):
    if value:
        typer.echo(f"Service Control Panel {__version__}")
        raise typer.Exit()


def load_config(host: Optional[str] = None, port: Optional[int] = None) -> PanelConfig:
    """Load configuration from the environment, with CLI overrides."""
    overrides = {}
    if host is not None:
        overrides["bind_address"] = host
    if port is not None:
        overrides["port"] = port
    return PanelConfig(**overrides)


@app.command(help="Serve the service control panel.")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (overrides HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (overrides PORT)"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    configure_logging()

    try:
        config = load_config(host, port)
        configure_logging(config.log_level, config.log_json)

        # Imported here so --version and config errors do not pay for the web stack.
        from svcpanel.services.panel import ServicePanelServer

        server = ServicePanelServer(config)
        logger.info(
            "Starting Service Control Panel {} with allowed services {}",
            __version__,
            list(server.manager.allowlist),
        )
        server.run()
    except ValidationError as e:
        logger.error("Failed to load configuration: {}", e)
        sys.exit(1)
    except ConfigurationError as e:
        logger.error("Invalid configuration: {}", e)
        sys.exit(1)


if __name__ == "__main__":
    app()
