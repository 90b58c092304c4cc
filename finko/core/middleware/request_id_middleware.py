import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable, Awaitable

from finko.core.logging_config import request_id_var

REQUEST_ID_TOKEN_HEADER = "x-request-id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request (and every log line it produces) with an id."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_TOKEN_HEADER) or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response: Response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_TOKEN_HEADER] = request_id
        return response
