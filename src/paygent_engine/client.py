"""
MeteringClient SDK — sync client for Paygent-Engine.

Used by agents to report token usage and signal calls, top up credits, and
read profitability reports.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import httpx


@dataclass
class ClientTokenUsage:
    """Result of record_token_usage()."""

    success: bool
    id: str = ""
    model_id: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    input_cost: int = 0
    output_cost: int = 0
    total_cost: int = 0
    code: str = ""
    message: str = ""


@dataclass
class ClientBatchResult:
    success: bool
    records: list[ClientTokenUsage] = field(default_factory=list)
    skipped_count: int = 0
    code: str = ""
    message: str = ""


@dataclass
class ClientSignalCall:
    """Result of record_signal_call()."""

    success: bool
    id: str = ""
    cost_cents: int = 0
    cost_type: str = ""
    remaining_credits_cents: Optional[int] = None
    code: str = ""
    message: str = ""


@dataclass
class ClientAllocation:
    success: bool
    id: str = ""
    credits_cents: int = 0
    code: str = ""
    message: str = ""


@dataclass
class ClientProfitability:
    revenue: int = 0
    costs: int = 0
    profit: int = 0
    profit_margin: float = 0.0
    period_days: int = 0
    daily_revenue: float = 0.0
    daily_costs: float = 0.0
    daily_profit: float = 0.0
    revenue_breakdown: dict[str, int] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)


class MeteringClient:
    """
    Synchronous HTTP client for Paygent-Engine.

    Only GET requests are retried. Metering writes are never replayed, since
    a write that timed out may already have been recorded.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        api_key: Optional[str] = None,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.customer_id = customer_id
        self.agent_id = agent_id
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
            headers=self._auth_headers(),
            transport=transport,
        )

    def _auth_headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-Paygent-Api-Key"] = self.api_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any] | list[Any]:
        """Central HTTP method with structured error handling.

        GETs retry on timeouts, transport errors, 5xx and 429 with
        exponential backoff. Everything else gets exactly one attempt.

        Returns parsed JSON on success, or an error dict on failure.
        """
        attempts = self.max_retries if method == "get" else 1
        last_error = None
        for attempt in range(attempts):
            try:
                resp = getattr(self._http, method)(path, **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < attempts - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return {
                        "error": f"Server error: {resp.status_code}",
                        "code": "SERVER_ERROR",
                    }
                if resp.status_code >= 400:
                    return self._client_error(resp)
                if resp.status_code == 204:
                    return {}
                return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < attempts - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < attempts - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return {"error": "Invalid JSON response", "code": "JSON_ERROR"}

        return {"error": f"Request failed after {attempts} attempt(s): {last_error}", "code": "CONNECTION_ERROR"}

    @staticmethod
    def _client_error(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except json.JSONDecodeError:
            body = {}
        if isinstance(body, dict) and body.get("code"):
            return {"error": body.get("error", ""), "code": body["code"]}
        return {
            "error": f"Client error: {resp.status_code}",
            "code": "CLIENT_ERROR",
        }

    def _ids(self, customer_id: Optional[str], agent_id: Optional[str]) -> tuple[str, str]:
        return customer_id or self.customer_id or "", agent_id or self.agent_id or ""

    @staticmethod
    def _parse_usage(data: dict) -> ClientTokenUsage:
        return ClientTokenUsage(
            success=True,
            id=data.get("id", ""),
            model_id=data.get("model_id", ""),
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            input_cost=data.get("input_cost", 0),
            output_cost=data.get("output_cost", 0),
            total_cost=data.get("total_cost", 0),
        )

    # ── Token usage ──

    def record_token_usage(
        self,
        model: str,
        input_tokens: int,
        output_tokens: int,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        metadata: dict[str, Any] | None = None,
    ) -> ClientTokenUsage:
        customer_id, agent_id = self._ids(customer_id, agent_id)
        body = {
            "customer_id": customer_id,
            "agent_id": agent_id,
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "metadata": metadata or {},
        }
        data = self._request("post", "/usage/tokens", json=body)
        if "error" in data:
            return ClientTokenUsage(
                success=False, code=data.get("code", "ERROR"),
                message=data.get("error", ""),
            )
        return self._parse_usage(data)

    def record_token_usage_batch(self, entries: list[dict[str, Any]]) -> ClientBatchResult:
        """Each entry needs model/input_tokens/output_tokens; ids default to the client's."""
        payload = []
        for entry in entries:
            customer_id, agent_id = self._ids(entry.get("customer_id"), entry.get("agent_id"))
            payload.append({
                "customer_id": customer_id,
                "agent_id": agent_id,
                "model": entry["model"],
                "input_tokens": entry["input_tokens"],
                "output_tokens": entry["output_tokens"],
                "metadata": entry.get("metadata", {}),
            })
        data = self._request("post", "/usage/tokens/batch", json={"entries": payload})
        if "error" in data:
            return ClientBatchResult(
                success=False, code=data.get("code", "ERROR"),
                message=data.get("error", ""),
            )
        return ClientBatchResult(
            success=True,
            records=[self._parse_usage(r) for r in data.get("records", [])],
            skipped_count=data.get("skipped_count", 0),
        )

    # ── Signals ──

    def record_signal_call(
        self,
        signal: str,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        metadata: dict[str, Any] | None = None,
    ) -> ClientSignalCall:
        customer_id, agent_id = self._ids(customer_id, agent_id)
        body = {
            "customer_id": customer_id,
            "agent_id": agent_id,
            "signal": signal,
            "metadata": metadata or {},
        }
        data = self._request("post", "/usage/signals", json=body)
        if "error" in data:
            return ClientSignalCall(
                success=False, code=data.get("code", "ERROR"),
                message=data.get("error", ""),
            )
        return ClientSignalCall(
            success=True,
            id=data.get("id", ""),
            cost_cents=data.get("cost_cents", 0),
            cost_type=data.get("cost_type", ""),
            remaining_credits_cents=(data.get("metadata") or {}).get("remaining_credits_cents"),
        )

    # ── Credits ──

    def allocate_credits(
        self,
        signal_id: str,
        credits_cents: int,
        price_total_cents: Optional[int] = None,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> ClientAllocation:
        customer_id, agent_id = self._ids(customer_id, agent_id)
        body = {
            "customer_id": customer_id,
            "agent_id": agent_id,
            "signal_id": signal_id,
            "credits_cents": credits_cents,
            "price_total_cents": price_total_cents,
        }
        data = self._request("post", "/credits/allocations", json=body)
        if "error" in data:
            return ClientAllocation(
                success=False, code=data.get("code", "ERROR"),
                message=data.get("error", ""),
            )
        return ClientAllocation(
            success=True,
            id=data.get("id", ""),
            credits_cents=data.get("credits_cents", 0),
        )

    def get_balance(
        self,
        signal_id: str,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> Optional[int]:
        customer_id, agent_id = self._ids(customer_id, agent_id)
        data = self._request("get", "/credits/balance", params={
            "customer_id": customer_id,
            "agent_id": agent_id,
            "signal_id": signal_id,
        })
        if "error" in data:
            return None
        return data.get("credits_cents")

    # ── Reports ──

    def get_profitability(
        self,
        agent_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Optional[ClientProfitability]:
        params: dict[str, str] = {}
        if agent_id:
            params["agent_id"] = agent_id
        if customer_id:
            params["customer_id"] = customer_id
        if start_date:
            params["start_date"] = start_date.isoformat()
        if end_date:
            params["end_date"] = end_date.isoformat()
        data = self._request("get", "/analytics/profitability", params=params)
        if "error" in data:
            return None
        return ClientProfitability(
            revenue=data.get("revenue", 0),
            costs=data.get("costs", 0),
            profit=data.get("profit", 0),
            profit_margin=data.get("profit_margin", 0.0),
            period_days=data.get("period_days", 0),
            daily_revenue=data.get("daily_revenue", 0.0),
            daily_costs=data.get("daily_costs", 0.0),
            daily_profit=data.get("daily_profit", 0.0),
            revenue_breakdown=data.get("revenue_breakdown", {}),
            counts=data.get("counts", {}),
        )

    def health(self) -> dict[str, Any]:
        return self._request("get", "/health")

    # ── Lifecycle ──

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
