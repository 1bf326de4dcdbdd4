import httpx
import pytest
from httpx import ASGITransport

SUPABASE_URL = "https://project.supabase.co"
ENDPOINT = f"{SUPABASE_URL}/rest/v1/restaurants"


@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
    monkeypatch.setenv("LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("FULL_SCAN", raising=False)
    monkeypatch.delenv("LISTINGS_TABLE", raising=False)


@pytest.fixture
async def client(mock_env):
    from listing_pipeline.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
