"""Integration tests for the fees router — link-time charges and renewal sweeps."""

from datetime import datetime, timezone

import pytest

from paygent_engine.common.clock import FixedClock


@pytest.fixture
def clock(client):
    from paygent_engine.deps import set_clock

    fixed = FixedClock(datetime(2026, 1, 31, 9, tzinfo=timezone.utc))
    set_clock(fixed)
    return fixed


@pytest.fixture
async def linked(client, admin_headers, seed, clock):
    agent = (await client.post("/agents", json={
        "name": "Premium",
        "slug": "premium",
        "setup_fee_enabled": True,
        "setup_fee_cents": 5000,
        "platform_fee_enabled": True,
        "platform_fee_cents": 1000,
    }, headers=admin_headers)).json()
    resp = await client.post(f"/customers/{seed['customer']['id']}/agents", json={
        "agent_id": agent["id"],
    }, headers=admin_headers)
    platform = next(
        tx for tx in resp.json()["fee_transactions"] if tx["fee_type"] == "platform"
    )
    return {"customer_id": seed["customer"]["id"], "agent": agent, "platform": platform}


class TestFeesRouter:
    async def test_first_due_date_clamped(self, linked):
        assert linked["platform"]["billing_anchor_day"] == 31
        assert linked["platform"]["next_billing_date"].startswith("2026-02-28T12:00:00")

    async def test_should_charge(self, client, admin_headers, linked, clock):
        params = {"customer_id": linked["customer_id"], "agent_id": linked["agent"]["id"]}
        resp = await client.get("/fees/should-charge", params=params, headers=admin_headers)
        assert resp.json()["should_charge"] is False

        clock.set(datetime(2026, 2, 28, 12, tzinfo=timezone.utc))
        resp = await client.get("/fees/should-charge", params=params, headers=admin_headers)
        assert resp.json()["should_charge"] is True

    async def test_should_charge_by_slug(self, client, admin_headers, linked):
        resp = await client.get("/fees/should-charge", params={
            "customer_id": "acme", "agent_id": linked["agent"]["slug"],
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["customer_id"] == linked["customer_id"]
        assert resp.json()["should_charge"] is False

    async def test_should_charge_unknown_ids(self, client, admin_headers, linked):
        resp = await client.get("/fees/should-charge", params={
            "customer_id": "ghost", "agent_id": linked["agent"]["id"],
        }, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "CUSTOMER_NOT_FOUND"

        resp = await client.get("/fees/should-charge", params={
            "customer_id": linked["customer_id"], "agent_id": "ghost",
        }, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "AGENT_NOT_FOUND"

    async def test_charge_before_due(self, client, admin_headers, linked):
        resp = await client.post("/fees/charge", json={
            "customer_id": linked["customer_id"],
            "agent_id": linked["agent"]["id"],
            "fee_type": "platform",
        }, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["code"] == "ALREADY_RENEWED"

    async def test_charge_requires_link(self, client, admin_headers, linked):
        other = (await client.post("/customers", json={
            "name": "Globex", "slug": "globex",
        }, headers=admin_headers)).json()
        resp = await client.post("/fees/charge", json={
            "customer_id": other["id"],
            "agent_id": "premium",
            "fee_type": "platform",
        }, headers=admin_headers)
        assert resp.status_code == 403

    async def test_setup_fee_not_configured(self, client, admin_headers, seed, clock):
        resp = await client.post("/fees/charge", json={
            "customer_id": seed["customer"]["id"],
            "agent_id": seed["agent"]["id"],
            "fee_type": "setup",
        }, headers=admin_headers)
        assert resp.status_code == 400

    async def test_renewal_sweep(self, client, admin_headers, linked, clock):
        resp = await client.post("/fees/renew", headers=admin_headers)
        assert resp.json() == {"renewed_count": 0, "skipped_count": 0}

        clock.set(datetime(2026, 3, 1, tzinfo=timezone.utc))
        resp = await client.get("/fees/due", headers=admin_headers)
        assert [tx["id"] for tx in resp.json()] == [linked["platform"]["id"]]

        resp = await client.post("/fees/renew", headers=admin_headers)
        assert resp.json()["renewed_count"] == 1
        resp = await client.post("/fees/renew", headers=admin_headers)
        assert resp.json()["renewed_count"] == 0

        resp = await client.get(
            f"/fees/customers/{linked['customer_id']}",
            params={"fee_type": "platform"},
            headers=admin_headers,
        )
        history = resp.json()
        assert len(history) == 2
        active = [tx for tx in history if tx["is_active"]]
        assert len(active) == 1
        assert active[0]["previous_transaction_id"] == linked["platform"]["id"]
        assert active[0]["next_billing_date"].startswith("2026-03-31T12:00:00")

        resp = await client.get(
            f"/fees/transactions/{active[0]['id']}/chain", headers=admin_headers,
        )
        assert [tx["id"] for tx in resp.json()] == [active[0]["id"], linked["platform"]["id"]]

        resp = await client.get(
            f"/fees/customers/{linked['customer_id']}/total", headers=admin_headers,
        )
        assert resp.json()["total_cents"] == 7000

    async def test_disabled_fee_frozen(self, client, admin_headers, linked, clock):
        await client.patch(f"/agents/{linked['agent']['id']}", json={
            "platform_fee_enabled": False,
        }, headers=admin_headers)
        clock.set(datetime(2026, 3, 1, tzinfo=timezone.utc))
        resp = await client.post("/fees/renew", headers=admin_headers)
        assert resp.json() == {"renewed_count": 0, "skipped_count": 1}

    async def test_missing_chain(self, client, admin_headers):
        resp = await client.get("/fees/transactions/nope/chain", headers=admin_headers)
        assert resp.status_code == 404
