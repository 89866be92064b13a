from pydantic import BaseModel, ConfigDict
from typing import Optional

# (key, value) as hex strings; value is None when the key holds no value
StoragePair = tuple[str, Optional[str]]

class ChainSpec(BaseModel):
    model_config = ConfigDict(extra='allow')  # Keep every field build-spec emits

    name: str
    id: str
    protocolId: Optional[str] = None
    genesis: dict

    @property
    def top(self) -> dict:
        """The raw top-level storage map, created on first access if missing."""
        raw = self.genesis.setdefault("raw", {})
        return raw.setdefault("top", {})
