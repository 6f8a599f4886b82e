from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from twofactor import __version__
from twofactor.core.config.settings import get_settings
from twofactor.core.handlers import add_exception_handlers
from twofactor.core.middleware import add_request_id_middleware
from twofactor.db.session import close_db, init_db
from twofactor.modules.two_factor import api as two_factor_api
from twofactor.modules.two_factor.pending import PendingSetupStore
from twofactor.modules.two_factor.sweep_scheduler import build_pending_setup_sweep_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    sweep_scheduler = build_pending_setup_sweep_scheduler(app.state.pending_setup_store)
    await sweep_scheduler.start()

    try:
        yield
    finally:
        try:
            await sweep_scheduler.stop()
        finally:
            await close_db()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="twofactor", version=__version__, lifespan=lifespan)
    app.state.pending_setup_store = PendingSetupStore(ttl_seconds=settings.pending_setup_ttl_seconds)

    add_request_id_middleware(app)
    add_exception_handlers(app)

    app.include_router(two_factor_api.router)
    return app


app = create_app()
