"""
FastAPI application factory.

Mounts the routers enabled in `server.services`, maps CommerceError
subclasses to `{"error", "code"}` bodies, and logs one line per request.
"""

import time
import uuid
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commerce.app import CommerceApp
from commerce.core.config import Settings
from commerce.utils.exceptions import CommerceError, RateLimitError
from commerce.utils.logger import get_logger

from . import cart_routes, identity_routes, order_routes, payment_routes, product_routes

logger = get_logger(__name__)

SERVICE_ROUTERS = {
    "users": [identity_routes.auth_router, identity_routes.users_router],
    "products": [product_routes.router],
    "orders": [order_routes.router],
    "carts": [cart_routes.router],
    "payments": [payment_routes.router],
}


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(loc) or "request"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"


def create_app(settings: Optional[Settings] = None, commerce: Optional[CommerceApp] = None) -> FastAPI:
    """Build the web app around an initialized CommerceApp"""
    commerce = (commerce or CommerceApp(settings)).initialize()
    settings = commerce.settings

    app = FastAPI(
        title=settings.app.name,
        description="Mock e-commerce backend",
        version=settings.app.version,
    )
    app.state.commerce = commerce

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.monotonic()
        response = await call_next(request)
        logger.info(
            "Request handled",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - start) * 1000, 1),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(CommerceError)
    async def commerce_error_handler(request: Request, exc: CommerceError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log("Request failed", path=request.url.path, code=exc.code, status_code=exc.status_code, error=exc.message)
        headers = None
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers = {"Retry-After": str(exc.retry_after)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "code": "VALIDATION_ERROR"},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    @app.get("/health")
    def health():
        return {"status": "OK", "service": settings.app.name}

    for service in settings.server.services:
        for router in SERVICE_ROUTERS.get(service, []):
            app.include_router(router)

    if "users" in settings.server.services:
        commerce.seed_admin()

    return app
