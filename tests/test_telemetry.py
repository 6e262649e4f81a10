import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import create_async_engine

from marketplace.core.config import Settings
from marketplace.core.telemetry import instrument_engine, setup_telemetry


@pytest.mark.asyncio
async def test_instrumented_app_skips_health_checks():
    app = FastAPI(version="9.9.9")

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    provider = setup_telemetry(app, Settings(service_name="marketplace-test", env="test"))
    try:
        assert provider.resource.attributes["service.name"] == "marketplace-test"
        assert provider.resource.attributes["service.version"] == "9.9.9"

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            r = await ac.get("/api/health")
        assert r.json() == {"status": "ok"}
    finally:
        provider.shutdown()


@pytest.mark.asyncio
async def test_engine_instrumentation(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 't.db'}")
    try:
        instrument_engine(engine)
    finally:
        await engine.dispose()
