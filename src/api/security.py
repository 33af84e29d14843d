"""Caller identity dependencies

Identity is asserted by the upstream auth gateway through request headers.
"""

import hmac
from fastapi import Depends, Request, status
from libs.result import Error
from src.api.error import ClientError
from src.depends import ServiceContainer, get_container


def get_current_user_id(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> str:
    user_id = request.headers.get(container.config.USER_ID_HEADER, "").strip()
    if not user_id:
        raise ClientError(
            Error(
                code="UNAUTHORIZED",
                message="Authentication required",
                reason=f"Missing {container.config.USER_ID_HEADER} header",
            ),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return user_id


def require_admin(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    config = container.config
    if config.AUTH_DISABLED:
        return

    token = request.headers.get(config.ADMIN_TOKEN_HEADER, "")
    if not config.ADMIN_API_TOKEN or not hmac.compare_digest(token.encode(), config.ADMIN_API_TOKEN.encode()):
        raise ClientError(
            Error(code="FORBIDDEN", message="Admin access required"),
            status_code=status.HTTP_403_FORBIDDEN,
        )
