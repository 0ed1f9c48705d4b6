from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import AccountServiceError


logger = logging.getLogger(__name__)


async def account_error_handler(request: Request, exc: AccountServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.reason, "detail": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    fields = [f for f in fields if f]
    detail = "invalid request"
    if fields:
        detail += ": " + ", ".join(fields)
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "detail": detail},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccountServiceError, account_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
