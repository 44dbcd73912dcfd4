import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import Settings, load_settings
from app.store import build_stores
from routes import game_ws, games
from services.registry import run_idle_sweeper


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    stores = build_stores(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        sweeper_task = None
        if settings.session_sweep_interval_sec > 0:
            sweeper_task = asyncio.create_task(
                run_idle_sweeper(
                    stores.registry,
                    max_idle=timedelta(seconds=settings.idle_session_timeout_sec),
                    interval=settings.session_sweep_interval_sec,
                )
            )
        try:
            yield
        finally:
            if sweeper_task is not None:
                sweeper_task.cancel()
                with suppress(asyncio.CancelledError):
                    await sweeper_task
            await stores.aclose()

    app = FastAPI(title="Tic-Tac-Toe API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.stores = stores
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(games.router, prefix="/api")
    app.include_router(game_ws.router)
    return app


app = create_app()
