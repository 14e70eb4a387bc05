"""JSON responses and the error envelope shared by every endpoint."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIResponse(JSONResponse):
    """JSON response carrying the headers every reply needs."""

    media_type = "application/json; charset=utf-8"

    def __init__(self, content=None, status_code: int = 200, headers=None, **kwargs):
        headers = {
            "access-control-allow-origin": "*",
            **{key.lower(): value for key, value in (headers or {}).items()},
        }
        super().__init__(content, status_code=status_code, headers=headers, **kwargs)


def error_response(status_code: int, message: str, headers=None) -> APIResponse:
    """Render ``{"error": message}``."""
    return APIResponse({"error": message}, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> APIResponse:
    return error_response(exc.status_code, str(exc.detail), headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> APIResponse:
    """Malformed bodies are not told apart from other server errors."""
    message = "; ".join(error.get("msg", "invalid request") for error in exc.errors())
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message or "invalid request")


async def unhandled_exception_handler(request: Request, exc: Exception) -> APIResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal server error")


class JSONCORSMiddleware(CORSMiddleware):
    """CORS middleware whose preflight replies use the JSON envelope."""

    def preflight_response(self, request_headers: Headers) -> APIResponse:
        response = super().preflight_response(request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        if response.status_code == status.HTTP_200_OK:
            return APIResponse(None, headers=headers)
        return error_response(response.status_code, response.body.decode(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
