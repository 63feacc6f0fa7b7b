from typing import Any, Dict, List, Optional

import httpx

from core.logging import get_api_logger_safe
from core.utils.exceptions import ApiRequestError


class SimuTradeClient:
    """Async client for the SimuTrade REST API, as used by a dashboard."""

    def __init__(
        self,
        base_url: str = "http://localhost:4000",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._owns_client = client is None
        self.logger = get_api_logger_safe("client")

    async def __aenter__(self) -> "SimuTradeClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_portfolio(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/portfolio")

    async def fetch_history(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/history")

    async def fetch_stock(self, symbol: str) -> Dict[str, Any]:
        return await self._request("GET", "/api/stocks", params={"symbol": symbol})

    async def place_trade(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/api/trade", json=payload)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ApiRequestError(f"Request to {path} failed: {e}", status_code=0) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error:
            message = "Request failed"
            kind = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message") or message
                kind = body.get("kind")
            self.logger.warning("API request failed",
                                method=method,
                                path=path,
                                status_code=response.status_code,
                                kind=kind,
                                error=message)
            raise ApiRequestError(message, status_code=response.status_code, kind=kind,
                                  details={"path": path, "body": body})

        if body is None:
            raise ApiRequestError(f"Response from {path} is not JSON",
                                  status_code=response.status_code)
        return body
