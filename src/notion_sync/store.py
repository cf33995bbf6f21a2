"""HTTP adapter for the Notion v3 record store.

Four endpoints are used, all POST with JSON bodies:
- getBacklinksForBlock: a block plus its backlink context
- syncRecordValues: specific records by table and id
- saveTransactions: submit operation batches
- loadUserContent: everything reachable from the current user

Failures are not retried here; httpx errors propagate to the caller.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from .tables import Table
from .transactions import TransactionRequest

logger = logging.getLogger("notion-sync")

NOTION_API_BASE = "https://www.notion.so/api/v3"
REQUEST_TIMEOUT = 30.0  # seconds


class RecordStore(Protocol):
    """What the sync client needs from the remote store."""

    async def get_backlinks_for_block(self, block_id: str) -> dict: ...

    async def sync_record_values(self, requests: list[dict]) -> dict: ...

    async def save_transactions(self, request: TransactionRequest) -> dict: ...

    async def load_user_content(self) -> dict: ...


def _http_error_detail(e: httpx.HTTPStatusError, max_len: int = 300) -> str:
    """Truncated response body of a failed request, for logs and tool errors."""
    if e.response is not None:
        return e.response.text[:max_len]
    return str(e)


class HttpRecordStore:
    """RecordStore backed by httpx, authenticated with a token_v2 cookie.

    The token is opaque: it is attached to every request and never inspected.
    """

    def __init__(
        self,
        token: str,
        base_url: str = NOTION_API_BASE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = client
        self._owns_client = client is None

    def _headers(self) -> dict[str, str]:
        return {
            "Cookie": f"token_v2={self._token}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
            self._owns_client = True
        return self._client

    async def _post(self, endpoint: str, json_body: Optional[dict] = None) -> dict:
        client = await self._get_client()
        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"POST {endpoint}")
        response = await client.post(url, headers=self._headers(), json=json_body or {})
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"{endpoint} failed with HTTP {response.status_code}: {_http_error_detail(e)}")
            raise
        if not response.content:
            return {}
        return response.json()

    async def get_backlinks_for_block(self, block_id: str) -> dict:
        return await self._post("getBacklinksForBlock", {"blockId": block_id})

    async def sync_record_values(self, requests: list[dict]) -> dict:
        return await self._post("syncRecordValues", {"requests": requests})

    async def save_transactions(self, request: TransactionRequest) -> dict:
        return await self._post("saveTransactions", request.to_dict())

    async def load_user_content(self) -> dict:
        return await self._post("loadUserContent", {})

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpRecordStore":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()


def record_request(table: Table, record_id: str, version: int = -1) -> dict:
    """One entry of a syncRecordValues request; version -1 means latest."""
    return {"id": record_id, "table": table.value, "version": version}
