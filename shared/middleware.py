"""Request-scoped middleware and the problem+json (RFC 9457) exception handlers."""

import time
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from uuid import uuid4

import structlog
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from shared.exceptions import ProblemDetailError, ValidationError

logger = structlog.get_logger()

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

PROBLEM_JSON = "application/problem+json"
REQUEST_ID_HEADER = "X-Request-ID"

# Request locations that carry no information for the caller
_HIDDEN_LOCATIONS = {"body", "query", "path"}


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id (caller-supplied or UUID v4) and log its outcome.

    The id is echoed in the response header and bound into the structlog
    context for every log line emitted while the request is handled.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request_id_var.set(rid)
        structlog.contextvars.bind_contextvars(request_id=rid)
        started = time.monotonic()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.monotonic() - started) * 1000, 1),
            )
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id")


def _problem(status: int, title: str, detail: str, instance: str, **extra) -> JSONResponse:
    body = {
        "type": extra.pop("type_uri", "about:blank"),
        "title": title,
        "status": status,
        "detail": detail,
        "instance": instance,
    }
    body.update({k: v for k, v in extra.items() if v})
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_JSON)


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    """Render a domain ProblemDetailError."""
    return _problem(
        exc.status,
        exc.title,
        exc.detail,
        request.url.path,
        type_uri=exc.type_uri,
        violations=exc.violations,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI query/body validation failures as a ValidationError problem."""
    violations = []
    for err in exc.errors():
        parts = [str(p) for p in err.get("loc", ()) if p not in _HIDDEN_LOCATIONS]
        violations.append(
            {
                "field": ".".join(parts) or "(root)",
                "message": err.get("msg", "Validation error"),
                "constraint": err.get("type", "validation"),
            }
        )
    return await problem_detail_handler(request, ValidationError(violations))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing and framework HTTP errors (404, 405, ...) as problem+json."""
    if isinstance(exc.detail, str):
        title = detail = exc.detail
    else:
        title, detail = "Error", str(exc.detail)
    return _problem(exc.status_code, title, detail, request.url.path)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the failure and answer 500 without leaking internals."""
    logger.exception("request_failed", method=request.method, path=request.url.path)
    return _problem(
        500,
        "Internal Server Error",
        f"Request failed; quote request id {request_id_var.get('')} when reporting it",
        request.url.path,
    )
