"""
Map service exceptions to HTTP responses.

Every ServiceError becomes {"detail": {"code": ..., "message": ...}} with
the status code declared on the exception class.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from eventhub.core.logging import get_logger
from eventhub.services.exceptions import ServiceError

logger = get_logger(__name__)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("service_error", code=exc.code.value, error=exc.message)
    else:
        logger.info("request_rejected", code=exc.code.value, status_code=exc.status_code)

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.code.value, "message": exc.message}},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
