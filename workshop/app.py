from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workshop.application import SessionStore, configure_session_store
from workshop.core.logging import get_logger
from workshop.core.settings import Settings
from workshop.core.slots import FileSessionSlot
from workshop.infrastructure import InMemorySessionGateway, SessionGateway, SupabaseSessionGateway
from workshop.routes import session

logger = get_logger(__name__)


def build_gateway(settings: Settings) -> SessionGateway:
    if settings.uses_supabase:
        return SupabaseSessionGateway(
            settings.supabase_url or "",
            settings.supabase_key or "",
            table=settings.sessions_table,
        )
    logger.info("SUPABASE_URL/SUPABASE_ANON_KEY not set, sessions are kept in memory")
    return InMemorySessionGateway()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    gateway = build_gateway(settings)
    store = configure_session_store(
        SessionStore(
            gateway,
            FileSessionSlot(settings.state_root),
            load_retries=settings.load_retries,
            draft_delay=settings.debounce_ms / 1000,
        )
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await store.wait_for_pending()
        close = getattr(gateway, "aclose", None)
        if close is not None:
            await close()

    app = FastAPI(title="Offer Workshop Session API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(session.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Offer Workshop Session API",
                "docs": "/docs",
                "session": "/api/session",
                "totalSteps": SessionStore.TOTAL_STEPS,
                "debounceMs": settings.debounce_ms,
            }
        )

    return app


app = create_app()
