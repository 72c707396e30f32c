"""Global exception handlers mapping orderflow errors onto HTTP responses.

    FormValidationError              -> 422 {"error": "validation_error", "message", "field_errors"}
    OrderNotFoundError / UnknownFlow -> 404
    OrderStateError / StepMismatch   -> 409
    ConcurrentUpdateError            -> 409
    UnknownStepError                 -> 404
    Exception (catch-all)            -> 500 fallback payload from ErrorHandler
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from orderflow.error_handler import ErrorHandler
from orderflow.errors import (
    ConcurrentUpdateError,
    OrderNotFoundError,
    OrderStateError,
    StepMismatchError,
    UnknownFlowError,
    UnknownStepError,
)
from orderflow.validation import FormValidationError

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND, "order_not_found"),
    (UnknownFlowError, status.HTTP_404_NOT_FOUND, "unknown_flow"),
    (UnknownStepError, status.HTTP_404_NOT_FOUND, "unknown_step"),
    (OrderStateError, status.HTTP_409_CONFLICT, "invalid_order_state"),
    (StepMismatchError, status.HTTP_409_CONFLICT, "step_mismatch"),
    (ConcurrentUpdateError, status.HTTP_409_CONFLICT, "concurrent_update"),
)


def register_error_handlers(app: FastAPI, error_handler: ErrorHandler = None) -> None:
    """Register all global error handlers on the FastAPI app."""
    error_handler = error_handler or ErrorHandler()

    @app.exception_handler(FormValidationError)
    async def form_validation_error_handler(request: Request, exc: FormValidationError):
        logger.info("Validation error on %s: fields=%s", request.url.path, sorted(exc.field_errors))
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "error": "validation_error",
                    "message": exc.message,
                    "field_errors": exc.field_errors,
                }
            },
        )

    for error_type, http_status, code in _STATUS_BY_ERROR:
        _register_domain_error(app, error_type, http_status, code)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        payload = error_handler.handle_exception(exc, context={"path": request.url.path})
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": payload})


def _register_domain_error(app: FastAPI, error_type, http_status: int, code: str) -> None:
    @app.exception_handler(error_type)
    async def domain_error_handler(request: Request, exc: Exception):
        logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(status_code=http_status, content={"detail": {"error": code, "message": str(exc)}})
