"""
Common fixtures: an in-memory stand-in for the live node.
"""

import asyncio
import hashlib
from collections import Counter
from typing import Optional

import pytest

from forkoff.config import Settings

HEAD = "0x" + "ab" * 32


def synthetic_storage(count: int) -> dict[str, Optional[str]]:
    """`count` keys spread over the whole key space, each with a small value."""
    storage = {}
    for i in range(count):
        key = "0x" + hashlib.sha256(str(i).encode()).hexdigest()[:16]
        storage[key] = "0x" + f"{i:04x}"
    return storage


class FakeNode:
    """Serves state_getKeysPaged / state_queryStorageAt from a dict, pinned to HEAD."""

    def __init__(self, storage: dict[str, Optional[str]], short_values_under: Optional[str] = None,
                 jitter: bool = False):
        self.storage = storage
        self.sorted_keys = sorted(storage)
        self.short_values_under = short_values_under
        self.jitter = jitter
        self.calls = Counter()
        self.pages: list[tuple[str, Optional[str]]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        pass

    async def _maybe_yield(self, prefix: str):
        # Leaf chunks finish out of order when jitter is on
        if self.jitter and len(prefix) > 2:
            await asyncio.sleep(0.001 * (int(prefix[-2:], 16) % 4))

    async def get_finalized_head(self) -> str:
        self.calls["chain_getFinalizedHead"] += 1
        return HEAD

    async def get_keys_paged(self, prefix, count, start_key, at):
        assert at == HEAD
        self.calls["state_getKeysPaged"] += 1
        self.pages.append((prefix, start_key))
        await self._maybe_yield(prefix)
        keys = [
            key for key in self.sorted_keys
            if key.startswith(prefix) and (start_key is None or key > start_key)
        ]
        return keys[:count]

    async def query_storage_at(self, keys, at):
        assert at == HEAD
        self.calls["state_queryStorageAt"] += 1
        values = [self.storage[key] for key in keys]
        if self.short_values_under and keys[0].startswith(self.short_values_under):
            values = values[:-1]
        return values

    async def get_metadata(self, at=None):
        self.calls["state_getMetadata"] += 1
        return "0x6d657461"


@pytest.fixture
def make_settings(tmp_path):
    """Settings rooted in a temporary data dir, progress bar off."""
    def _make(**overrides):
        values = {
            "DATA_DIR": tmp_path,
            "SHOW_PROGRESS": False,
        }
        values.update(overrides)
        return Settings(**values)
    return _make
