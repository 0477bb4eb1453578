from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from pos_console.config import settings
from pos_console.observability import configure_logging
from pos_console.routers import (
    impersonation,
    observability,
    session_routes,
    stores,
    tenant_data,
)
from pos_console.session.console import ConsoleSession


@asynccontextmanager
async def lifespan(app: FastAPI):
    console: ConsoleSession = app.state.console
    console.init()
    yield
    console.close()


def create_app(console: ConsoleSession | None = None) -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="POS Console", version="0.1.0", lifespan=lifespan)
    app.state.console = console or ConsoleSession.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def attach_request_id(request: Request, call_next):
        request_id = (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Correlation-ID")
            or str(uuid4())
        )
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(session_routes.router)
    app.include_router(impersonation.router)
    app.include_router(stores.router)
    app.include_router(tenant_data.router)
    app.include_router(observability.router)

    @app.get("/")
    async def root():
        return {"status": "ok", "service": "pos-console"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()
