"""
Chunked download of a node's entire key-value state.

The key space is split by byte prefix: every level of subdivision appends one
byte to the prefix, so `256 ** depth` leaf chunks cover the whole namespace
with no overlaps and no gaps. Each leaf chunk is enumerated page by page with
`state_getKeysPaged`, and every page's values are looked up in a single
`state_queryStorageAt` call. All calls of a run are pinned to one finalized
block hash so the snapshot is consistent across chunks.

With quick mode on, only the deepest level fans out: the 256 leaf chunks of a
depth-1 subtree run concurrently and are awaited together. Output order then
no longer follows key order, only the set of pairs is the same.
"""

import asyncio
from typing import Iterator, Optional

from forkoff.config import Settings
from forkoff.console import log, success, warn
from forkoff.models import StoragePair
from forkoff.progress import ProgressReporter
from forkoff.rpc import NodeRpc
from forkoff.snapshot_writer import SnapshotWriter

PAGE_SIZE = 512
BRANCHING = 256
ROOT_PREFIX = "0x"


class ValueMismatchError(Exception):
    """A bulk lookup returned a different number of values than keys."""


class PaginationError(Exception):
    """The node returned a page whose cursor does not move forward."""


def child_prefixes(prefix: str) -> list[str]:
    """The 256 one-byte extensions of `prefix`, in lexicographic order."""
    return [prefix + f"{i:02x}" for i in range(BRANCHING)]


def count_leaf_chunks(depth: int) -> int:
    return BRANCHING ** max(depth, 0)


def leaf_prefixes(depth: int, prefix: str = ROOT_PREFIX) -> Iterator[str]:
    """Yield every leaf prefix `depth` bytes below `prefix`, in key order."""
    stack = [(prefix, depth)]
    while stack:
        current, remaining = stack.pop()
        if remaining <= 0:
            yield current
            continue
        # Reversed so the smallest child is popped first
        stack.extend((child, remaining - 1) for child in reversed(child_prefixes(current)))


def pair_values(keys: list[str], values: list[Optional[str]]) -> list[StoragePair]:
    """Pair keys with values by position; keys left without a value get None."""
    return [(key, values[i] if i < len(values) else None) for i, key in enumerate(keys)]


class StateFetcher:
    def __init__(
        self,
        rpc: NodeRpc,
        writer: SnapshotWriter,
        page_size: int = PAGE_SIZE,
        quick_mode: bool = False,
        fail_on_mismatch: bool = False,
        progress: Optional[ProgressReporter] = None
    ):
        self.rpc = rpc
        self.writer = writer
        self.page_size = page_size
        self.quick_mode = quick_mode
        self.fail_on_mismatch = fail_on_mismatch
        self.progress = progress

        self.chunks_fetched = 0
        self.keys_fetched = 0
        self.mismatches = 0

    async def fetch_chunks(self, prefix: str, levels_remaining: int, at: str):
        """Fetch every pair under `prefix`, subdividing `levels_remaining` more times."""
        if levels_remaining <= 0:
            await self.fetch_all(prefix, at)
            self.chunks_fetched += 1
            if self.progress:
                self.progress.chunk_done()
            return

        children = child_prefixes(prefix)

        if self.quick_mode and levels_remaining == 1:
            tasks = [asyncio.ensure_future(self.fetch_chunks(child, 0, at)) for child in children]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                # One failed leaf fails the run; stop its siblings
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        else:
            for child in children:
                await self.fetch_chunks(child, levels_remaining - 1, at)

    async def fetch_all(self, prefix: str, at: str):
        """Page through every key under `prefix` at block `at` and queue the pairs."""
        cursor = None

        while True:
            keys = await self.rpc.get_keys_paged(prefix, self.page_size, cursor, at)
            if not keys:
                return

            if cursor is not None and keys[-1] <= cursor:
                raise PaginationError(f"Page under {prefix} did not advance past {cursor}")

            values = await self.rpc.query_storage_at(keys, at)
            if len(values) != len(keys):
                self._report_mismatch(prefix, keys, values)

            self.writer.append(pair_values(keys, values))
            self.keys_fetched += len(keys)
            if self.progress:
                self.progress.keys_added(len(keys))

            # A short page means the chunk is exhausted
            if len(keys) < self.page_size:
                return
            cursor = keys[-1]

    def _report_mismatch(self, prefix: str, keys: list[str], values: list):
        self.mismatches += 1
        message = (f"values length: {len(values)} and key length: {len(keys)} not equal "
                   f"(chunk {prefix}, page starting at {keys[0]})")
        if self.fail_on_mismatch:
            raise ValueMismatchError(message)
        warn(message)


async def fetch_state(rpc: NodeRpc, settings: Settings) -> bool:
    """
    Download the node's full state into the snapshot file.

    Returns False without touching the network when an existing snapshot is
    reused, True after a fresh fetch.
    """
    storage_path = settings.storage_path

    if settings.REUSE_EXISTING_SNAPSHOT and storage_path.exists():
        warn(f"Reusing cached storage. Delete {storage_path} and rerun if you want to fetch the latest storage")
        return False

    log("Fetching current state of the live chain. This can take a while depending on the size of the chain.")
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)

    at = await rpc.get_finalized_head()
    log(f"Starting to fetch key pairs at block: {at}")

    progress = ProgressReporter(settings.total_chunks, enabled=settings.SHOW_PROGRESS)
    try:
        async with SnapshotWriter(storage_path) as writer:
            fetcher = StateFetcher(
                rpc,
                writer,
                page_size=settings.PAGE_SIZE,
                quick_mode=settings.QUICK_MODE,
                fail_on_mismatch=settings.FAIL_ON_VALUE_MISMATCH,
                progress=progress
            )
            await fetcher.fetch_chunks(ROOT_PREFIX, settings.FORK_CHUNKS_LEVEL, at)
    finally:
        progress.close()

    success(f"Fetched {fetcher.keys_fetched} keys in {fetcher.chunks_fetched} chunks")
    if fetcher.mismatches:
        warn(f"{fetcher.mismatches} page(s) returned a value count different from the key count. "
             f"The snapshot at {storage_path} is suspect.")
    return True
