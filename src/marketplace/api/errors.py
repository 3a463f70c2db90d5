"""Exception handlers translating marketplace errors into HTTP responses.

Protean's own handlers cover ``ValidationError`` (400) and
``ObjectNotFoundError`` (404), which includes every business-rule failure
derived from them. Error bodies are ``{"error": <message or field errors>}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import Forbidden, InfrastructureError, OrderNumberConflict

logger = structlog.get_logger(__name__)


def _field_errors(exc: RequestValidationError) -> dict:
    errors = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.setdefault(".".join(location) or "body", []).append(error.get("msg", "Invalid value"))
    return errors


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": _field_errors(exc)})


async def forbidden_handler(request: Request, exc: Forbidden) -> JSONResponse:
    return JSONResponse(status_code=403, content={"error": exc.message})


async def conflict_handler(request: Request, exc: OrderNumberConflict) -> JSONResponse:
    logger.warning("Order number conflict", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=409, content={"error": exc.message})


async def infrastructure_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
    logger.error("Infrastructure failure", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=500, content={"error": exc.message})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Forbidden, forbidden_handler)
    app.add_exception_handler(OrderNumberConflict, conflict_handler)
    app.add_exception_handler(InfrastructureError, infrastructure_handler)
