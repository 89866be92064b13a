"""
JSON-RPC client for the live node.

Only the four calls a fork run needs are exposed. There is no retry here:
a failed call surfaces as an exception and ends the run.
"""

import itertools
from typing import Any, Optional

import httpx


class RpcError(Exception):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, error: dict):
        self.method = method
        self.code = error.get("code")
        self.message = error.get("message", "")
        super().__init__(f"{method} failed ({self.code}): {self.message}")


class NodeRpc:
    """Thin async wrapper around the node's HTTP JSON-RPC endpoint."""

    def __init__(self, url: str, timeout: float = 120.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=5.0,
                read=timeout,
                write=30.0,
                pool=5.0
            ),
            transport=transport
        )

    async def __aenter__(self) -> "NodeRpc":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        if not self._client.is_closed:
            await self._client.aclose()

    async def call(self, method: str, params: list) -> Any:
        response = await self._client.post(
            self.url,
            json={
                "jsonrpc": "2.0",
                "id": next(self._ids),
                "method": method,
                "params": params
            }
        )
        response.raise_for_status()
        body = response.json()

        if body.get("error"):
            raise RpcError(method, body["error"])
        return body.get("result")

    async def get_finalized_head(self) -> str:
        return await self.call("chain_getFinalizedHead", [])

    async def get_keys_paged(self, prefix: str, count: int, start_key: Optional[str], at: str) -> list[str]:
        return await self.call("state_getKeysPaged", [prefix, count, start_key, at])

    async def query_storage_at(self, keys: list[str], at: str) -> list[Optional[str]]:
        """
        Bulk value lookup pinned to `at`.

        The node answers with change sets of [key, value] pairs; values are
        returned in the order the node listed them, which is the order of
        `keys` for a well-behaved node.
        """
        result = await self.call("state_queryStorageAt", [keys, at])
        values = []
        for change_set in result or []:
            values.extend(value for _, value in change_set["changes"])
        return values

    async def get_metadata(self, at: Optional[str] = None) -> str:
        params = [at] if at else []
        return await self.call("state_getMetadata", params)
