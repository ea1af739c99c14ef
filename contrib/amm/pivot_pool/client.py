"""
Pivot Pool - API Client

HTTP client for the Pivot Pool REST API. The underlying requests.Session
keeps the session cookie, so all calls from one client share one pool.

Usage:
    api = PoolClient("http://localhost:8090")
    quote = api.quote("TBTC", 0.1, "KHU")
    if quote is None:
        ...  # no route
    api.swap("TBTC", 0.1, "KHU")
"""

from typing import Any, Dict, Optional

import requests


class PoolAPIError(Exception):
    """API call failed."""
    def __init__(self, status: int, kind: str, message: str):
        self.status = status
        self.kind = kind
        self.message = message
        super().__init__(f"Pool API error {status} ({kind}): {message}")


class PoolClient:

    def __init__(self, base_url: str = "http://localhost:8090", timeout: int = 10,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _call(self, method: str, path: str, params: Optional[dict] = None,
              body: Optional[dict] = None) -> Any:
        """Make API call."""
        try:
            response = self.http.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=body,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PoolAPIError(-1, "ConnectionError", f"Connection failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400:
            if isinstance(data, dict):
                raise PoolAPIError(response.status_code, data.get("kind", "HTTPError"),
                                   data.get("error", response.reason))
            raise PoolAPIError(response.status_code, "HTTPError", response.reason or "")

        return data

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def health(self) -> dict:
        return self._call("GET", "/health")

    def info(self) -> dict:
        """Pool info: total_pivot, reserves, history."""
        return self._call("GET", "/api/pool")

    def quote(self, asset_in: str, amount_in: Any, asset_out: str) -> Optional[Dict[str, Any]]:
        """Quote dict, or None when there is no route."""
        return self._call("GET", "/api/quote", params={
            "asset_in": asset_in,
            "amount_in": str(amount_in),
            "asset_out": asset_out,
        })

    def swap(self, asset_in: str, amount_in: Any, asset_out: str) -> dict:
        """Swap response; result is None and committed False when there is no route."""
        return self._call("POST", "/api/swap", body={
            "asset_in": asset_in,
            "amount_in": str(amount_in),
            "asset_out": asset_out,
        })

    def add_liquidity(self, amount: Any) -> dict:
        return self._call("POST", "/api/liquidity", body={"amount": str(amount)})

    def reset(self) -> dict:
        return self._call("POST", "/api/reset")

    def impermanent_loss(self, price_ratio: Any) -> dict:
        return self._call("GET", "/api/impermanent_loss", params={"price_ratio": str(price_ratio)})
