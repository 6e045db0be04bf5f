# storefront/main.py
import time
from uuid import uuid4

from fastapi import FastAPI, Request

from storefront.core.logging_config import logger, setup_logging
from storefront.core.settings import settings
from storefront.observability.metrics import router as metrics_router
from storefront.pricing.api import router as pricing_router


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(title="Storefront Pricing", version="0.1.0")

    # ----------------------------------------------------
    # Health
    # ----------------------------------------------------
    @app.get("/health", include_in_schema=True)
    def health() -> dict:
        return {"status": "ok", "env": settings.app_env}

    # ----------------------------------------------------
    # Logging middleware
    # ----------------------------------------------------
    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        start = time.time()

        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id

        bound_logger = logger.bind(
            request_id=request_id,
            endpoint=str(request.url.path),
            method=request.method,
        )

        bound_logger.info("request_started")
        response = await call_next(request)
        latency_ms = round((time.time() - start) * 1000, 2)

        bound_logger.bind(status_code=response.status_code, latency_ms=latency_ms).info("request_finished")
        response.headers["X-Request-ID"] = request_id
        return response

    # ----------------------------------------------------
    # Routers
    # ----------------------------------------------------
    app.include_router(pricing_router)
    if settings.metrics_enabled:
        app.include_router(metrics_router)  # /metrics

    logger.info("startup", service="storefront-pricing", env=settings.app_env)
    return app


app = create_app()
