# app/api/errors.py
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.domain.errors import FulfillmentError, StorageError, TransientStorageError
from app.utils.logging import get_logger

logger = get_logger(__name__)


def _error_response(exc: FulfillmentError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "errorCode": exc.error_code},
    )


async def fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    elif isinstance(exc, TransientStorageError):
        logger.warning(f"{request.method} {request.url.path} transient failure: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}")
    return _error_response(exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FulfillmentError, fulfillment_error_handler)
