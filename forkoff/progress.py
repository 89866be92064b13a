from tqdm import tqdm


class ProgressReporter:
    """Chunks completed over chunks total, with a running key count."""

    def __init__(self, total_chunks: int, enabled: bool = True):
        self.total_chunks = total_chunks
        self.chunks_fetched = 0
        self.keys_fetched = 0
        self._bar = tqdm(
            total=total_chunks,
            unit="chunk",
            desc="Fetching storage",
            disable=not enabled
        )

    def keys_added(self, count: int):
        self.keys_fetched += count
        self._bar.set_postfix(keys=self.keys_fetched, refresh=False)

    def chunk_done(self):
        self.chunks_fetched += 1
        self._bar.update(1)

    def close(self):
        self._bar.close()
