"""Integration tests for the credits router."""


def _allocation(seed, credits, price=None):
    return {
        "customer_id": seed["customer"]["id"],
        "agent_id": seed["agent"]["id"],
        "signal_id": seed["signals"]["deep-search"]["id"],
        "credits_cents": credits,
        "price_total_cents": price,
    }


class TestCreditsRouter:
    async def test_allocate_and_top_up(self, client, admin_headers, seed):
        resp = await client.post(
            "/credits/allocations", json=_allocation(seed, 500), headers=admin_headers,
        )
        assert resp.status_code == 200
        first = resp.json()

        resp = await client.post(
            "/credits/allocations", json=_allocation(seed, 250), headers=admin_headers,
        )
        assert resp.json()["id"] == first["id"]
        assert resp.json()["credits_cents"] == 750

    async def test_balance(self, client, admin_headers, seed):
        params = {
            "customer_id": seed["customer"]["id"],
            "agent_id": seed["agent"]["id"],
            "signal_id": seed["signals"]["deep-search"]["id"],
        }
        resp = await client.get("/credits/balance", params=params, headers=admin_headers)
        assert resp.json()["credits_cents"] is None

        await client.post(
            "/credits/allocations", json=_allocation(seed, 500), headers=admin_headers,
        )
        resp = await client.get("/credits/balance", params=params, headers=admin_headers)
        assert resp.json()["credits_cents"] == 500

    async def test_deduct(self, client, admin_headers, seed):
        allocation = (await client.post(
            "/credits/allocations", json=_allocation(seed, 300), headers=admin_headers,
        )).json()
        url = f"/credits/allocations/{allocation['id']}/deduct"

        resp = await client.post(url, json={"required_cents": 200}, headers=admin_headers)
        assert resp.json()["credits_cents"] == 100

        resp = await client.post(url, json={"required_cents": 200}, headers=admin_headers)
        assert resp.status_code == 409
        assert resp.json()["code"] == "INSUFFICIENT_CREDITS"

        resp = await client.get(
            f"/credits/allocations/{allocation['id']}", headers=admin_headers,
        )
        assert resp.json()["credits_cents"] == 100

    async def test_deduct_missing(self, client, admin_headers):
        resp = await client.post(
            "/credits/allocations/nope/deduct",
            json={"required_cents": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 404
        assert resp.json()["code"] == "ALLOCATION_NOT_FOUND"

    async def test_set_and_delete(self, client, admin_headers, seed):
        allocation = (await client.post(
            "/credits/allocations", json=_allocation(seed, 300), headers=admin_headers,
        )).json()
        url = f"/credits/allocations/{allocation['id']}"

        resp = await client.put(url, json={"credits_cents": 42}, headers=admin_headers)
        assert resp.json()["credits_cents"] == 42

        resp = await client.delete(url, headers=admin_headers)
        assert resp.status_code == 204
        resp = await client.get(url, headers=admin_headers)
        assert resp.status_code == 404

    async def test_signal_from_other_agent(self, client, admin_headers, seed):
        other = (await client.post("/agents", json={
            "name": "Other", "slug": "other",
        }, headers=admin_headers)).json()
        body = _allocation(seed, 100)
        body["agent_id"] = other["id"]
        resp = await client.post("/credits/allocations", json=body, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "SIGNAL_NOT_FOUND"

    async def test_purchases(self, client, admin_headers, seed):
        await client.post(
            "/credits/allocations", json=_allocation(seed, 1000, price=800),
            headers=admin_headers,
        )
        await client.post(
            "/credits/allocations", json=_allocation(seed, 1000), headers=admin_headers,
        )
        resp = await client.get(
            f"/credits/purchases?customer_id={seed['customer']['id']}",
            headers=admin_headers,
        )
        purchases = resp.json()
        assert len(purchases) == 1
        assert purchases[0]["price_paid_cents"] == 800

        resp = await client.get(
            f"/credits/allocations?customer_id={seed['customer']['id']}",
            headers=admin_headers,
        )
        assert resp.json()[0]["credits_cents"] == 2000
