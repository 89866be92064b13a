"""
Streaming snapshot writer.

The snapshot is one JSON array of [key, value] pairs written page by page, so
the full state never has to sit in memory. Pages are handed over through an
asyncio queue and written by a single worker task; that task alone owns the
file handle and the "separator written" flag, which keeps fragments from
interleaving when leaf chunks are fetched concurrently.

The file only becomes valid JSON when `close()` writes the closing bracket.
A run that dies midway leaves an unparsable file behind, which has to be
deleted before the next run.
"""

import asyncio
import json
from pathlib import Path
from typing import IO, Iterable, Optional

from forkoff.models import StoragePair

# Queue item telling the worker to stop
_CLOSE = None


class SnapshotWriter:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.pairs_written = 0
        self._queue: asyncio.Queue[Optional[list[StoragePair]]] = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None
        self._file: Optional[IO[str]] = None
        self._separator = False

    async def __aenter__(self) -> "SnapshotWriter":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            await self.close()
        else:
            await self.abort()

    async def open(self):
        """Create (or truncate) the snapshot file and start the writer task."""
        self._file = open(self.path, "w", encoding="utf-8")
        self._file.write("[")
        self._worker_task = asyncio.create_task(self._worker())

    def append(self, pairs: Iterable[StoragePair]):
        """Queue one page of pairs. Never suspends the caller."""
        if self._worker_task is None:
            raise RuntimeError("SnapshotWriter.append() called before open()")
        if self._worker_task.done():
            # Re-raises whatever killed the worker
            self._worker_task.result()
            raise RuntimeError("SnapshotWriter worker has stopped, no more pages accepted")
        self._queue.put_nowait(list(pairs))

    async def close(self):
        """Drain the queue, write the closing bracket and close the file."""
        await self._queue.put(_CLOSE)
        try:
            await self._worker_task
            self._file.write("]")
        finally:
            self._file.close()

    async def abort(self):
        """Stop without closing the array; the file is left invalid on purpose."""
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
        if self._file and not self._file.closed:
            self._file.close()

    async def _worker(self):
        while True:
            batch = await self._queue.get()
            if batch is _CLOSE:
                return
            self._write_batch(batch)

    def _write_batch(self, batch: list[StoragePair]):
        if not batch:
            return

        if self._separator:
            self._file.write(",")
        else:
            self._separator = True

        # Strip the outer brackets: the page becomes a run of array elements
        self._file.write(json.dumps(batch, separators=(",", ":"))[1:-1])
        self.pairs_written += len(batch)
