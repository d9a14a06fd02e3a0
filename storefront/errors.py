import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    """Base for payment orchestration failures. ``kind`` is stable across releases."""

    kind = "payment_error"
    status_code = 500

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if kind:
            self.kind = kind


class InvalidAmountError(PaymentError):
    kind = "validation_error"
    status_code = 400


class ProviderError(PaymentError):
    kind = "api_error"
    status_code = 500


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidAmountError)
    async def invalid_amount(request: Request, exc: InvalidAmountError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(ProviderError)
    async def provider_failure(request: Request, exc: ProviderError):
        # Provider details stay in the server log
        logger.error("payment provider failure kind=%s path=%s: %s", exc.kind, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "Payment provider error", "kind": exc.kind},
        )

    @app.exception_handler(SQLAlchemyError)
    async def persistence_failure(request: Request, exc: SQLAlchemyError):
        logger.error("database failure on %s", request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Database error"})
