# client.py - HTTP client for the gateway API
# Configuration comes from environment variables

import os
from typing import Any, Dict, List, Optional
from urllib.parse import quote
import httpx

GATEWAY_URL = os.getenv("GATEWAY_URL", "http://localhost:3000")

# No overall deadline: a slow statement keeps the console waiting
TIMEOUT = httpx.Timeout(
    connect=float(os.getenv("GATEWAY_CONNECT_TIMEOUT", "5.0")),
    read=None,
    write=float(os.getenv("GATEWAY_WRITE_TIMEOUT", "30.0")),
    pool=None
)

LIMITS = httpx.Limits(
    max_connections=int(os.getenv("GATEWAY_MAX_CONNECTIONS", "10")),
    max_keepalive_connections=int(os.getenv("GATEWAY_MAX_KEEPALIVE", "5"))
)


class GatewayError(Exception):
    """A non-2xx answer from the gateway, carrying its error message."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _table_path(table: str, *parts: str) -> str:
    return "/".join(["/api/table", quote(table, safe=""), *(quote(p, safe="") for p in parts)])


class GatewayClient:
    """One method per gateway endpoint; returns the decoded JSON body."""

    def __init__(self, base_url: str = GATEWAY_URL, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=TIMEOUT,
            limits=LIMITS,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.is_error:
            raise GatewayError(self._error_message(response), response.status_code)
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.text or response.reason_phrase

    # ─────────────────────────────────────────────────────────────────────────
    # Catalog
    # ─────────────────────────────────────────────────────────────────────────

    async def list_databases(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/databases")

    async def list_tables(self, database: str) -> Dict[str, Any]:
        return await self._request("GET", "/api/tables", params={"database": database})

    async def get_structure(self, database: str, table: str) -> Dict[str, Any]:
        return await self._request("GET", _table_path(table, "structure"), params={"database": database})

    # ─────────────────────────────────────────────────────────────────────────
    # Rows
    # ─────────────────────────────────────────────────────────────────────────

    async def list_rows(self, database: str, table: str, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        return await self._request(
            "GET",
            _table_path(table, "rows"),
            params={"database": database, "limit": limit, "offset": offset}
        )

    async def insert_row(self, database: str, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", _table_path(table, "rows"), params={"database": database}, json=data)

    async def update_row(self, database: str, table: str, row_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            _table_path(table, "rows", str(row_id)),
            params={"database": database},
            json=data
        )

    async def delete_row(self, database: str, table: str, row_id: Any) -> Dict[str, Any]:
        return await self._request(
            "DELETE",
            _table_path(table, "rows", str(row_id)),
            params={"database": database}
        )

    # ─────────────────────────────────────────────────────────────────────────
    # SQL
    # ─────────────────────────────────────────────────────────────────────────

    async def run_query(self, sql: str, database: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"sql": sql}
        if database:
            body["database"] = database
        return await self._request("POST", "/api/query", json=body)
