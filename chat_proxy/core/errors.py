from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_proxy.core.exceptions import NotFound, ProxyError
from chat_proxy.core.logging import logger
from chat_proxy.core.settings import get_settings

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(exc: ProxyError) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=exc.headers or None)


def _log_failure(request: Request, status_code: int, message: str, exc: BaseException) -> None:
    extra = {
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "error": message,
    }
    exc_info = None if get_settings().is_production() else exc
    if status_code >= 500:
        logger.error("request_failed", extra=extra, exc_info=exc_info)
    else:
        logger.warning("request_rejected", extra=extra, exc_info=exc_info)


async def handle_proxy_error(request: Request, exc: ProxyError) -> JSONResponse:
    _log_failure(request, exc.status_code, exc.message, exc)
    return error_response(exc)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # unknown paths and known paths with an unsupported method both count as unmatched
    if exc.status_code in (404, 405):
        not_found = NotFound()
        logger.warning(
            "route_not_found",
            extra={"method": request.method, "path": request.url.path, "status": not_found.status_code},
        )
        return error_response(not_found)
    error = ProxyError(str(exc.detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))
    _log_failure(request, error.status_code, error.message, exc)
    return error_response(error)


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    _log_failure(request, 500, str(exc) or type(exc).__name__, exc)
    return JSONResponse({"error": INTERNAL_ERROR_MESSAGE}, status_code=500)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProxyError, handle_proxy_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
