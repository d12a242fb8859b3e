"""Gateway key middleware."""

import secrets
from collections.abc import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from deskspace.desktop.errors import ErrorCode

PUBLIC_PATHS = frozenset(
    {
        "/api/v1/health/live",
        "/api/v1/health/ready",
    }
)


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={
            "success": False,
            "error": {"code": ErrorCode.UNAUTHORIZED.value, "message": message},
        },
    )


class GatewayKeyMiddleware(BaseHTTPMiddleware):
    """Middleware that checks the shared key presented by the identity gateway.

    The gateway is trusted to set the identity header, so requests that
    do not carry its key are rejected before any route runs. Health
    check endpoints are excluded to allow monitoring without auth.
    """

    def __init__(self, app: Callable[..., Awaitable[Response]], api_key: str) -> None:
        """Initialize middleware with the gateway key.

        Args:
            app: ASGI application.
            api_key: Expected X-API-Key value.
        """
        super().__init__(app)  # type: ignore[arg-type]
        self._api_key = api_key

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Validate the gateway key for non-public endpoints.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware or route handler.

        Returns:
            HTTP response, or a 401 envelope if the key is missing or wrong.
        """
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        provided_key = request.headers.get("X-API-Key", "")

        if not provided_key:
            return _unauthorized("Missing X-API-Key header")

        if not secrets.compare_digest(provided_key, self._api_key):
            return _unauthorized("Invalid API key")

        return await call_next(request)
