import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from whatsapp_relay.config import Settings, get_settings
from whatsapp_relay.database import build_engine, build_session_factory, init_db
from whatsapp_relay.dependencies import INTERNAL_GUARDS, ServiceContainer, build_services
from whatsapp_relay.error_handlers import register_error_handlers
from whatsapp_relay.logging_config import get_logger, setup_logging
from whatsapp_relay.routers import assistant, webhook, whatsapp

logger = get_logger("main")
access_logger = get_logger("access")


def create_app(settings: Optional[Settings] = None, services: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the application. Services are wired at startup unless provided."""
    settings = settings or (services.settings if services else get_settings())
    setup_logging(settings)

    app = FastAPI(
        title="WhatsApp Relay",
        description="Relay between the WhatsApp Cloud API and OpenAI Assistants",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.services = services
    app.state.engine = None
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        access_logger.info(
            f"{request.method} {request.url.path}",
            extra={
                "context": {
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                }
            },
        )
        return response

    app.include_router(webhook.router, prefix="/api/whatsapp", tags=["webhook"])
    app.include_router(whatsapp.router, prefix="/internal/whatsapp", tags=["whatsapp"], dependencies=INTERNAL_GUARDS)
    app.include_router(assistant.router, prefix="/internal/openai", tags=["openai"], dependencies=INTERNAL_GUARDS)

    register_error_handlers(app, settings)

    @app.on_event("startup")
    async def wire_services() -> None:
        if app.state.services is not None:
            return
        engine = build_engine(settings)
        init_db(engine)
        app.state.engine = engine
        app.state.services = build_services(settings, build_session_factory(engine))
        logger.info("Services wired", extra={"context": {"environment": settings.environment}})

    @app.on_event("shutdown")
    async def dispose_engine() -> None:
        if app.state.engine is not None:
            app.state.engine.dispose()
            app.state.engine = None

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
