"""
Remote Record Store
Client for the shared document store reached over the network.

Endpoints:
    GET    {base}/collections/{collection}/{id}
    PUT    {base}/collections/{collection}/{id}
    DELETE {base}/collections/{collection}/{id}
    POST   {base}/collections/{collection}:query
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from config import get_settings
from errors import ConnectivityError, SyncApplyError
from tools.record_store import Filter, RecordStore
from tools.records import encode_payload


logger = logging.getLogger(__name__)
settings = get_settings()


class HttpRecordStore(RecordStore):
    """
    RecordStore over HTTP

    Transport failures raise ConnectivityError. A 4xx answer means the remote
    rejected the request itself and raises a permanent SyncApplyError; 5xx
    answers raise a transient one.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        base = base_url or settings.REMOTE_STORE_URL
        if not base:
            raise ValueError("REMOTE_STORE_URL is not configured")
        self.base_url = base.rstrip("/")
        self.api_key = api_key if api_key is not None else settings.REMOTE_STORE_API_KEY
        self.timeout = timeout or settings.REMOTE_STORE_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"Remote store unreachable ({method} {path}): {e}")
            raise ConnectivityError(str(e)) from e

        if response.status_code >= 500:
            raise SyncApplyError(f"Remote store error {response.status_code} on {method} {path}")
        if response.status_code >= 400 and response.status_code != 404:
            raise SyncApplyError(
                f"Remote store rejected {method} {path}: {response.status_code} {response.text}",
                permanent=True
            )
        return response

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        response = await self._request("GET", f"/collections/{collection}/{record_id}")
        if response.status_code == 404:
            return None
        return response.json()

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        body = {
            "filters": [f.to_dict() for f in filters],
            "order_by": order_by,
            "descending": descending,
            "limit": limit,
        }
        response = await self._request("POST", f"/collections/{collection}:query", json=body)
        if response.status_code == 404:
            return []
        data = response.json()
        return data.get("documents", []) if isinstance(data, dict) else data

    async def upsert(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        document = encode_payload(dict(payload))
        document["id"] = record_id
        await self._request("PUT", f"/collections/{collection}/{record_id}", json=document)

    async def delete(self, collection: str, record_id: str) -> None:
        # 404 on delete is treated as already gone
        await self._request("DELETE", f"/collections/{collection}/{record_id}")
