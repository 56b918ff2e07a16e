"""Service control panel: dashboard, control API and static assets on one app."""

from pathlib import Path
from typing import Optional

from fastapi import Depends, Request
from fastapi.responses import HTMLResponse, ORJSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from svcpanel.config import PanelConfig
from svcpanel.control.manager import ServiceManager
from svcpanel.control.models import UNIT_SUFFIX, Allowlist
from svcpanel.control.router import get_manager, router as control_router, status_of_all_until_disconnected
from svcpanel.control.runner import SystemctlRunner
from svcpanel.exceptions import ConfigurationError
from svcpanel.middleware import SlidingWindowRateLimiter, install_middleware
from svcpanel.server import WebServer
from svcpanel.services.util import authorize, remote_address

PACKAGE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"
STATIC_DIR = PACKAGE_DIR / "static"


def _trim_suffix(value: str, suffix: str = UNIT_SUFFIX) -> str:
    return value[: -len(suffix)] if suffix and value.endswith(suffix) else value


def load_templates(directory: Path = TEMPLATES_DIR) -> Jinja2Templates:
    if not (directory / "index.html").is_file():
        raise ConfigurationError(f"Dashboard template not found in {directory}")
    templates = Jinja2Templates(directory=str(directory))
    templates.env.filters["trim_suffix"] = _trim_suffix
    return templates


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as the API envelope under /api, plain text elsewhere."""
    if request.url.path.startswith("/api/"):
        return ORJSONResponse(
            {"success": False, "error": str(exc.detail)},
            status_code=exc.status_code,
            headers=exc.headers,
        )
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


class ServicePanelServer(WebServer):
    """Web server for the service control panel."""

    def __init__(
        self,
        config: PanelConfig,
        manager: Optional[ServiceManager] = None,
        limiter: Optional[SlidingWindowRateLimiter] = None,
    ):
        self.config = config
        self.manager = manager or ServiceManager(
            Allowlist(config.allowed_services),
            SystemctlRunner(
                systemctl_path=config.systemctl_path,
                timeout=config.command_timeout_seconds,
                limit=config.max_output_bytes,
            ),
            serialize_operations=config.serialize_operations,
        )
        if limiter is None and config.rate_limit_enabled:
            limiter = SlidingWindowRateLimiter(
                limit=config.rate_limit_requests,
                window=config.rate_limit_window_seconds,
            )
        self.limiter = limiter
        self.templates = load_templates()
        if not STATIC_DIR.is_dir():
            raise ConfigurationError(f"Static asset directory not found: {STATIC_DIR}")
        super().__init__(config)

    def _setup_routes(self) -> None:
        self.app.state.config = self.config
        self.app.state.service_manager = self.manager

        self.app.add_api_route(
            "/",
            self.dashboard,
            methods=["GET"],
            response_class=HTMLResponse,
            include_in_schema=False,
        )
        self.app.include_router(control_router, prefix="/api", tags=["services"])
        self.app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

        self.app.add_exception_handler(StarletteHTTPException, http_error_handler)
        install_middleware(self.app, self.limiter, self.config.trust_proxy_headers)

    async def dashboard(
        self,
        request: Request,
        manager: ServiceManager = Depends(get_manager),
        _auth: str = Depends(authorize()),
    ):
        services = await status_of_all_until_disconnected(request, manager)
        logger.debug("Rendering dashboard with {} services for {}", len(services), remote_address(request))
        return self.templates.TemplateResponse(
            request,
            "index.html",
            {"services": services},
        )


def create_app(config: Optional[PanelConfig] = None, **kwargs):
    """Create the panel FastAPI app (for testing or programmatic use)."""
    server = ServicePanelServer(config or PanelConfig(), **kwargs)
    return server.app
