import base64
import binascii
from typing import Optional

from fastapi import Header, HTTPException, Request, status
from loguru import logger

from svcpanel.config import PanelConfig
from svcpanel.control.util import constant_time_equals

AUTH_REALM = "Service Control Panel"
BASIC_PREFIX = "Basic "


def remote_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _challenge() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": f'Basic realm="{AUTH_REALM}"'},
    )


def parse_basic_credentials(header: Optional[str]) -> Optional[tuple[str, str]]:
    """Return ``(username, password)`` from a Basic header, or None if unusable."""
    if not header or not header.startswith(BASIC_PREFIX):
        return None
    try:
        decoded = base64.b64decode(header[len(BASIC_PREFIX):], validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return None
    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return username, password


def authenticate(config: PanelConfig, username: str, password: str) -> bool:
    # Both comparisons always run so timing does not reveal which one failed.
    user_ok = constant_time_equals(username, config.admin_user)
    pass_ok = constant_time_equals(password, config.admin_pass.get_secret_value())
    return user_ok and pass_ok


def authorize():
    def _authorize(
        request: Request,
        authorization: Optional[str] = Header(None, include_in_schema=False),
    ) -> str:
        """
        Verify HTTP Basic credentials against the configured admin account.
        """
        config: PanelConfig = request.app.state.config
        client = remote_address(request)

        if not authorization:
            logger.debug("Missing authorization header from {} for {} {}", client, request.method, request.url.path)
            raise _challenge()

        credentials = parse_basic_credentials(authorization)
        if credentials is None:
            logger.warning("Malformed authorization header from {}", client)
            raise _challenge()

        username, password = credentials
        if not authenticate(config, username, password):
            logger.warning("Authentication failed for user {!r} from {}", username, client)
            raise _challenge()

        logger.debug("Authenticated {!r} from {}", username, client)
        return username

    return _authorize
