"""FastAPI application factory.

Run locally:
    uvicorn vangdata_api.app:app --reload --port 8000
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vangdata_shared.config import settings
from vangdata_shared.errors import VangdataError

from vangdata_pipeline.utils.logging import configure_logging

from vangdata_api.middleware.logging import LoggingMiddleware
from vangdata_api.responses import STATUS_CODES, error_response
from vangdata_api.routers.admin_backfill import router as admin_backfill_router
from vangdata_api.routers.automations import router as automations_router
from vangdata_api.routers.cron import router as cron_router
from vangdata_api.routers.health import router as health_router

logger = structlog.get_logger()


async def _domain_error_handler(request: Request, exc: VangdataError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("domain_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, details=exc.details),
    )


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = [
        {
            "field": ".".join(str(p) for p in err["loc"] if p != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    message = "; ".join(
        f"{p['field']}: {p['message']}" if p["field"] else p["message"] for p in problems
    )
    return JSONResponse(
        status_code=400,
        content=error_response(
            "validation_error",
            message or "Invalid request",
            details={"errors": problems},
        ),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(STATUS_CODES.get(exc.status_code, "error"), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content=error_response("unexpected_error", "An unexpected error occurred"),
    )


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="vangdata API",
        description="Gold price backfill administration and automation scheduler",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.add_exception_handler(VangdataError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # Routers
    app.include_router(health_router)
    app.include_router(admin_backfill_router)
    app.include_router(automations_router)
    app.include_router(cron_router)

    logger.info("app_created", cors_origins=settings.cors_origins_list)
    return app


app = create_app()
