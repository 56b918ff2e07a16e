from abc import abstractmethod
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.applications import AppType
from fastapi.responses import ORJSONResponse
from loguru import logger
from starlette.types import Lifespan

from svcpanel.config import ServerConfig
from svcpanel.exceptions import ConfigurationError


class WebServer:
    """Async web server base using FastAPI and uvicorn."""

    def __init__(self, config: ServerConfig, lifespan: Optional[Lifespan[AppType]] = None):
        self.config = config
        self.app = FastAPI(
            debug=config.debug,
            default_response_class=ORJSONResponse,
            lifespan=lifespan,
        )
        self._setup_routes()

    @abstractmethod
    def _setup_routes(self):
        """
        Setup web routes.
        Example:
        self.app.add_api_route('/route', self.handle_route, methods=["GET"])
        """
        raise NotImplementedError()

    def run(self):
        """Run the server until SIGINT/SIGTERM, then drain in-flight requests."""
        uvicorn_kwargs = {}

        if self.config.uds_path:
            logger.info(f"Starting server on Unix socket {self.config.uds_path}")
            uvicorn_kwargs["uds"] = str(self.config.uds_path)
        else:
            logger.info(f"Starting server on {self.config.bind_address}:{self.config.port}")
            uvicorn_kwargs["host"] = self.config.bind_address
            uvicorn_kwargs["port"] = self.config.port

            if self.config.tls_cert_path and self.config.tls_key_path:
                uvicorn_kwargs["ssl_certfile"] = str(self.config.tls_cert_path)
                uvicorn_kwargs["ssl_keyfile"] = str(self.config.tls_key_path)
                logger.info("TLS enabled")
            elif self.config.require_tls:
                raise ConfigurationError("TLS certificate and key are required for TCP connections")
            else:
                logger.warning("Starting server without TLS; expected to run behind a TLS-terminating proxy")

        uvicorn.run(
            self.app,
            log_level="debug" if self.config.debug else "info",
            log_config=None,
            timeout_keep_alive=self.config.keep_alive_timeout_seconds,
            timeout_graceful_shutdown=self.config.shutdown_grace_seconds,
            h11_max_incomplete_event_size=self.config.max_header_bytes,
            **uvicorn_kwargs,
        )
        logger.info("Server shutdown complete")
