from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field

DEFAULT_SKIPPED_MODULES = [
    "Session",
    "Babe",
    "Grandpa",
    "GrandpaFinality",
    "FinalityTracker",
    "Authorship",
]

class Settings(BaseSettings):
    # Using the HTTP endpoint since the node's WS endpoint has a message size limit
    HTTP_RPC_ENDPOINT: str = "http://localhost:9933"
    # The storage download is split into 256^FORK_CHUNKS_LEVEL chunks
    FORK_CHUNKS_LEVEL: int = Field(1, ge=0)
    QUICK_MODE: bool = False  # Fetch the deepest level of chunks concurrently
    CHAIN: str = ""
    ALICE: bool = False  # Pin sudo/governance keys to //Alice
    REUSE_EXISTING_SNAPSHOT: bool = True
    DATA_DIR: Path = Path("./data")
    PAGE_SIZE: int = 512
    RPC_TIMEOUT_SECONDS: float = 120.0
    SKIPPED_MODULES: list[str] = DEFAULT_SKIPPED_MODULES
    FAIL_ON_VALUE_MISMATCH: bool = False
    SHOW_PROGRESS: bool = True

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore"
    )

    @property
    def binary_path(self) -> Path:
        return self.DATA_DIR / "binary"

    @property
    def wasm_path(self) -> Path:
        return self.DATA_DIR / "runtime.wasm"

    @property
    def schema_path(self) -> Path:
        return self.DATA_DIR / "schema.json"

    @property
    def original_spec_path(self) -> Path:
        return self.DATA_DIR / "genesis.json"

    @property
    def forked_spec_path(self) -> Path:
        return self.DATA_DIR / "fork.json"

    @property
    def storage_path(self) -> Path:
        return self.DATA_DIR / "storage.json"

    @property
    def total_chunks(self) -> int:
        return 256 ** self.FORK_CHUNKS_LEVEL

settings = Settings()
