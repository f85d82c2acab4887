import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import DomainError

logger = logging.getLogger(__name__)


def error_response(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    content = {
        "success": False,
        "error": message,
        "path": str(request.url.path),
    }
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app):
    """
    Register global exception handlers for the ``{success: false, error}`` envelope.
    """

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        return error_response(request, exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            request,
            400,
            "Invalid request data",
            errors=[
                {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                for err in exc.errors()
            ],
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(request, exc.status_code, str(exc.detail))

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
        return error_response(request, 409, "Conflicting or duplicate data")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return error_response(request, 500, "Internal server error")
