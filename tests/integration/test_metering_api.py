"""Integration tests for the usage metering router."""


def _usage(seed, **overrides):
    body = {
        "customer_id": seed["customer"]["id"],
        "agent_id": seed["agent"]["id"],
        "model": "gpt-4o",
        "input_tokens": 1000,
        "output_tokens": 500,
    }
    body.update(overrides)
    return body


def _call(seed, signal):
    return {
        "customer_id": seed["customer"]["id"],
        "agent_id": seed["agent"]["id"],
        "signal": signal,
    }


class TestTokenUsage:
    async def test_record(self, client, admin_headers, seed):
        resp = await client.post("/usage/tokens", json=_usage(seed), headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["input_cost"] == 0
        assert data["output_cost"] == 1
        assert data["total_cost"] == 1
        assert data["model_id"] == seed["model"]["id"]

    async def test_unknown_model(self, client, admin_headers, seed):
        resp = await client.post(
            "/usage/tokens", json=_usage(seed, model="nope"), headers=admin_headers,
        )
        assert resp.status_code == 404
        assert resp.json()["code"] == "MODEL_NOT_FOUND"

    async def test_negative_tokens(self, client, admin_headers, seed):
        resp = await client.post(
            "/usage/tokens", json=_usage(seed, input_tokens=-1), headers=admin_headers,
        )
        assert resp.status_code == 422

    async def test_restricted_agent_without_link(self, client, admin_headers, seed):
        await client.patch(f"/agents/{seed['agent']['id']}", json={
            "platform_fee_enabled": True, "platform_fee_cents": 1000,
        }, headers=admin_headers)
        resp = await client.post("/usage/tokens", json=_usage(seed), headers=admin_headers)
        assert resp.status_code == 403
        assert resp.json()["code"] == "ACCESS_DENIED"

    async def test_batch_skips_unknown_models(self, client, admin_headers, seed):
        resp = await client.post("/usage/tokens/batch", json={"entries": [
            _usage(seed),
            _usage(seed, model="retired"),
        ]}, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["recorded_count"] == 1
        assert data["skipped_count"] == 1

    async def test_reports(self, client, admin_headers, seed):
        for _ in range(3):
            await client.post("/usage/tokens", json=_usage(
                seed, input_tokens=1_000_000, output_tokens=0,
            ), headers=admin_headers)

        resp = await client.get(
            f"/usage/tokens/totals?customer_id={seed['customer']['id']}",
            headers=admin_headers,
        )
        assert resp.json()["total_cost"] == 900
        assert resp.json()["request_count"] == 3

        resp = await client.get("/usage/tokens/by-model", headers=admin_headers)
        assert resp.json()[0]["model_slug"] == "gpt-4o"

        resp = await client.get("/usage/tokens?page_size=2", headers=admin_headers)
        data = resp.json()
        assert data["total"] == 3
        assert len(data["items"]) == 2


class TestSignalCalls:
    async def test_usage_signal(self, client, admin_headers, seed):
        resp = await client.post("/usage/signals", json=_call(seed, "lookup"), headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json()["cost_cents"] == 5
        assert resp.json()["cost_type"] == "monetary"

    async def test_credit_signal_without_allocation(self, client, admin_headers, seed):
        resp = await client.post(
            "/usage/signals", json=_call(seed, "deep-search"), headers=admin_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "INSUFFICIENT_CREDITS"

    async def test_credit_signal_consumes_allocation(self, client, admin_headers, seed):
        await client.post("/credits/allocations", json={
            "customer_id": seed["customer"]["id"],
            "agent_id": seed["agent"]["id"],
            "signal_id": seed["signals"]["deep-search"]["id"],
            "credits_cents": 500,
        }, headers=admin_headers)

        remaining = []
        for _ in range(2):
            resp = await client.post(
                "/usage/signals", json=_call(seed, "deep-search"), headers=admin_headers,
            )
            remaining.append(resp.json()["metadata"]["remaining_credits_cents"])
        assert remaining == [300, 100]

        resp = await client.post(
            "/usage/signals", json=_call(seed, "deep-search"), headers=admin_headers,
        )
        assert resp.status_code == 409

    async def test_unknown_signal(self, client, admin_headers, seed):
        resp = await client.post("/usage/signals", json=_call(seed, "ghost"), headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "SIGNAL_NOT_FOUND"

    async def test_customer_reports(self, client, admin_headers, seed):
        for signal in ("lookup", "lookup", "lead-found"):
            await client.post("/usage/signals", json=_call(seed, signal), headers=admin_headers)
        customer_id = seed["customer"]["id"]

        resp = await client.get(f"/customers/{customer_id}/signals", headers=admin_headers)
        breakdown = resp.json()
        assert breakdown[0]["signal_name"] == "lookup"
        assert breakdown[0]["call_count"] == 2

        resp = await client.get(f"/customers/{customer_id}/payments", headers=admin_headers)
        summary = resp.json()
        assert summary["total_calls"] == 3
        assert summary["total_amount_cents"] == 60
        assert summary["unique_signals"] == 2

        resp = await client.get(
            f"/usage/signals?customer_id={customer_id}", headers=admin_headers,
        )
        assert resp.json()["total"] == 3

    async def test_customer_agent_summary(self, client, admin_headers, seed):
        for signal in ("lookup", "lookup", "lead-found"):
            await client.post("/usage/signals", json=_call(seed, signal), headers=admin_headers)
        customer_id = seed["customer"]["id"]

        resp = await client.get(
            f"/customers/{customer_id}/agent-summary", headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["agent_count"] == 1
        assert data["agents"] == [{
            "agent_id": seed["agent"]["id"],
            "agent_name": seed["agent"]["name"],
            "signal_count": 2,
        }]
