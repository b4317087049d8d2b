"""FastAPI application entry point for the call event gateway."""

from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callhub.bootstrap import Services, build_services
from callhub.utils.logging import get_logger, setup_logging

# Lazy import settings to allow running without .env during tests
_settings = None


def _get_settings():
    global _settings
    if _settings is None:
        from callhub.config import settings
        _settings = settings
    return _settings


logger = get_logger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    """Build the application. Pass ``services`` to skip building from settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = _get_settings()
        setup_logging(settings.log_level, settings.log_format)
        logger.info("app_starting")

        if app.state.services is None:
            app.state.services = build_services(settings)
        owned = app.state.services

        # Preload static per-language answers
        await owned.cache.warmup()
        logger.info("app_ready", functions=owned.registry.list())

        yield

        logger.info("app_shutting_down")
        await owned.close()
        logger.info("app_shutdown_complete")

    app = FastAPI(
        title="Call Hub",
        description="Voice platform webhook gateway with memoized function execution",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/webhook")
    async def webhook(request: Request):
        """Receive one platform event.

        The raw body is read before any parsing so the signature is checked
        over the exact bytes that were signed.
        """
        gateway = request.app.state.services.gateway
        raw_body = await request.body()
        signature = request.headers.get(gateway.signature_header)
        response = await gateway.handle(raw_body, signature)
        return JSONResponse(content=response.body, status_code=response.status_code)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return request.app.state.services.gateway.health()

    @app.get("/reports/costs/daily")
    async def daily_costs(request: Request, date: str | None = None):
        day = _parse_day(date)
        report = await request.app.state.services.costs.daily_cost_report(day)
        return report.model_dump()

    @app.get("/reports/costs/suggestions")
    async def cost_suggestions(request: Request):
        suggestions = await request.app.state.services.costs.optimization_suggestions()
        return {"suggestions": [s.model_dump() for s in suggestions]}

    return app


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD") from None


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = _get_settings()
    uvicorn.run(
        "callhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
