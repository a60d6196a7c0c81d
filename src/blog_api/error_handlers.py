import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blog_api.errors import BlogApiError, StorageUnavailable, ValidationFailed
from blog_api.validation import format_validation_errors

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def register_error_handlers(app: FastAPI) -> None:
    """Register the global exception handlers on the FastAPI app."""

    @app.exception_handler(BlogApiError)
    async def blog_api_error_handler(request: Request, exc: BlogApiError) -> JSONResponse:
        if isinstance(exc, StorageUnavailable):
            logger.error("Storage failure on %s: %s", request.url.path, exc.message)
        else:
            logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        failure = ValidationFailed(format_validation_errors(exc.errors()))
        logger.warning("Validation error on %s: %s", request.url.path, failure.errors)
        return JSONResponse(status_code=failure.status_code, content=failure.to_response())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Unknown routes and wrong methods, raised by the router itself.
        code = HTTPStatus(exc.status_code).phrase.upper().replace(" ", "_")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": code},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Never echo internal details to the client.
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
        )
