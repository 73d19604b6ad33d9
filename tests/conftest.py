"""Shared test fixtures for Paygent-Engine."""

import os
import pytest
from httpx import ASGITransport, AsyncClient


API_KEY = "test-admin-api-key"


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app():
    """Create a test app with in-memory DB."""
    os.environ["PAYGENT_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["PAYGENT_API_KEY"] = API_KEY

    # Clear caches and singletons so new env vars take effect
    from paygent_engine.common.config import get_settings
    get_settings.cache_clear()

    from paygent_engine.deps import reset_singletons
    reset_singletons()

    from paygent_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from paygent_engine.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Paygent-Api-Key": API_KEY}


@pytest.fixture
async def seed(client, admin_headers):
    """A priced model, an open agent with one signal per type, and a customer."""
    model = (await client.post("/models", json={
        "slug": "gpt-4o",
        "input_cost_per_1m_tokens_cents": 300,
        "output_cost_per_1m_tokens_cents": 1500,
    }, headers=admin_headers)).json()
    agent = (await client.post("/agents", json={
        "name": "Research", "slug": "research",
    }, headers=admin_headers)).json()

    signals = {}
    for slug, signal_type, rate_field, rate in (
        ("lookup", "usage", "price_per_call_cents", 5),
        ("lead-found", "outcome", "outcome_price_cents", 50),
        ("deep-search", "credit", "credits_per_call_cents", 200),
    ):
        resp = await client.post(f"/agents/{agent['id']}/signals", json={
            "name": slug, "slug": slug, "signal_type": signal_type, rate_field: rate,
        }, headers=admin_headers)
        signals[slug] = resp.json()

    customer = (await client.post("/customers", json={
        "name": "Acme", "slug": "acme",
    }, headers=admin_headers)).json()
    return {"model": model, "agent": agent, "signals": signals, "customer": customer}
