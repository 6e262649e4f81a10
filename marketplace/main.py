import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from marketplace.api.v1.router import router as api_router
from marketplace.core.config import settings
from marketplace.core.db import Database
from marketplace.core.errors import install_error_handlers
from marketplace.core.telemetry import instrument_engine, setup_telemetry

logging.basicConfig(level=logging.INFO)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database.from_settings(settings)
    if settings.telemetry_enabled:
        instrument_engine(database.engine)
    app.state.database = database
    log.info("%s started (env=%s)", settings.service_name, settings.env)
    try:
        yield
    finally:
        await database.dispose()


app = FastAPI(title="Marketplace API", version="0.1.0", lifespan=lifespan)

if settings.telemetry_enabled:
    setup_telemetry(app)
install_error_handlers(app)
app.include_router(api_router)
# uploaded files; keys already start with "uploads/"
app.mount("/static", StaticFiles(directory=settings.upload_dir, check_dir=False), name="static")
