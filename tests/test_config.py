import pytest
from pydantic import ValidationError

from forkoff.config import Settings


def test_defaults(tmp_path):
    settings = Settings(DATA_DIR=tmp_path)

    assert settings.FORK_CHUNKS_LEVEL == 1
    assert settings.total_chunks == 256
    assert settings.PAGE_SIZE == 512
    assert settings.storage_path == tmp_path / "storage.json"


def test_chunk_depth_zero_is_one_chunk(tmp_path):
    assert Settings(DATA_DIR=tmp_path, FORK_CHUNKS_LEVEL=0).total_chunks == 1


def test_negative_chunk_depth_is_rejected(tmp_path):
    with pytest.raises(ValidationError):
        Settings(DATA_DIR=tmp_path, FORK_CHUNKS_LEVEL=-1)


def test_chunk_depth_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("FORK_CHUNKS_LEVEL", "-2")
    with pytest.raises(ValidationError):
        Settings(DATA_DIR=tmp_path)
