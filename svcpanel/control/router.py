"""Control submodule: FastAPI router and route handlers."""

from __future__ import annotations

import asyncio
from typing import Awaitable, List, Optional, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger

from svcpanel.responses import APIResponse, ServiceStatus
from svcpanel.services.util import authorize, remote_address

from .manager import ServiceManager, make_status
from .models import STATUS_ERROR, normalize_unit

SUPPORTED_ACTIONS = ("start", "stop")

T = TypeVar("T")

router = APIRouter()


def get_manager(request: Request) -> ServiceManager:
    return request.app.state.service_manager


async def _wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def run_until_disconnected(request: Request, operation: Awaitable[T]) -> Optional[T]:
    """Await ``operation``, cancelling it if the client disconnects first.

    Cancellation reaches the running systemctl child, which is killed.
    Returns None when the operation was cancelled this way; exceptions
    from the operation propagate.
    """
    task = asyncio.ensure_future(operation)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
        if not task.done() and watcher.exception() is None:
            task.cancel()
        await asyncio.wait({task})
    finally:
        watcher.cancel()
        if not task.done():
            task.cancel()
        await asyncio.wait({task, watcher})

    if task.cancelled():
        logger.warning(
            "Client {} disconnected, cancelled {} {}",
            remote_address(request),
            request.method,
            request.url.path,
        )
        return None
    return task.result()


async def status_of_all_until_disconnected(request: Request, manager: ServiceManager) -> List[ServiceStatus]:
    services = await run_until_disconnected(request, manager.status_of_all())
    if services is None:
        return [make_status(unit, STATUS_ERROR) for unit in manager.allowlist]
    return services


@router.get(
    "/services/status",
    response_model=APIResponse,
    response_model_exclude_none=True,
    summary="Status of all services",
    description="Returns the current status of every allowlisted service",
)
async def services_status(
    request: Request,
    manager: ServiceManager = Depends(get_manager),
    _auth: str = Depends(authorize()),
) -> APIResponse:
    services = await status_of_all_until_disconnected(request, manager)
    return APIResponse(success=True, services=services)


@router.post(
    "/services/{name}/{action}",
    response_model=APIResponse,
    response_model_exclude_none=True,
    summary="Start or stop a service",
    description="Runs the action and returns the service status afterwards",
)
async def control_service(
    name: str,
    action: str,
    request: Request,
    manager: ServiceManager = Depends(get_manager),
    _auth: str = Depends(authorize()),
) -> APIResponse:
    unit = normalize_unit(name)
    client = remote_address(request)

    if action not in SUPPORTED_ACTIONS:
        logger.warning("Invalid action {!r} requested for {} from {}", action, unit, client)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid action. Supported: start, stop",
        )

    operation = manager.start(unit) if action == "start" else manager.stop(unit)
    service = await run_until_disconnected(request, operation)
    if service is None:
        service = make_status(unit, STATUS_ERROR)

    logger.info("Service {} requested for {}: status={} from {}", action, unit, service.status, client)
    return APIResponse(success=True, service=service)
