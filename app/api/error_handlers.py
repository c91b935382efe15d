from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.services.exceptions import (
    ConflictError,
    DomainValidationError,
    InsufficientBalanceError,
    NoActiveSlotsError,
    NotEligibleError,
    ResourceNotFoundError,
    ServiceError,
)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResourceNotFoundError)
    async def handle_not_found(_: Request, exc: ResourceNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(DomainValidationError)
    async def handle_validation(_: Request, exc: DomainValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def handle_conflict(_: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(InsufficientBalanceError)
    async def handle_insufficient_balance(_: Request, exc: InsufficientBalanceError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.detail, "requested": exc.requested, "available": exc.available},
        )

    @app.exception_handler(NotEligibleError)
    async def handle_not_eligible(_: Request, exc: NotEligibleError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail, "rule": exc.rule})

    @app.exception_handler(NoActiveSlotsError)
    async def handle_no_active_slots(_: Request, exc: NoActiveSlotsError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.detail})
