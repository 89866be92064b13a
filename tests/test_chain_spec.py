import json
import os
import subprocess

import pytest

from forkoff import chain_spec
from forkoff.chain_spec import build_spec, build_specs, make_executable, write_spec
from forkoff.models import ChainSpec

SPEC = {"name": "Development", "id": "dev", "protocolId": None, "genesis": {"raw": {"top": {}}}}


@pytest.fixture
def fake_build_spec(monkeypatch):
    """Record build-spec invocations and answer with a canned spec."""
    commands = []

    def fake_run(cmd, **kwargs):
        commands.append(cmd)
        spec = dict(SPEC, id=cmd[3] if "--chain" in cmd else "dev")
        return subprocess.CompletedProcess(cmd, 0, stdout=json.dumps(spec), stderr="")

    monkeypatch.setattr(chain_spec.subprocess, "run", fake_run)
    return commands


def test_build_spec_parses_stdout(fake_build_spec, tmp_path):
    spec = build_spec(tmp_path / "binary", chain="polkadot")

    assert isinstance(spec, ChainSpec)
    assert spec.id == "polkadot"
    assert fake_build_spec == [[str(tmp_path / "binary"), "build-spec", "--chain", "polkadot", "--raw"]]


def test_build_specs_without_chain_uses_dev(fake_build_spec, tmp_path):
    build_specs(tmp_path / "binary")

    assert [cmd[1:] for cmd in fake_build_spec] == [
        ["build-spec", "--raw"],
        ["build-spec", "--dev", "--raw"],
    ]


def test_build_specs_with_chain_uses_dev_variant(fake_build_spec, tmp_path):
    original, forked = build_specs(tmp_path / "binary", "kusama")

    assert [cmd[1:] for cmd in fake_build_spec] == [
        ["build-spec", "--chain", "kusama", "--raw"],
        ["build-spec", "--chain", "kusama-dev", "--raw"],
    ]
    assert (original.id, forked.id) == ("kusama", "kusama-dev")


def test_build_spec_failure_propagates(monkeypatch, tmp_path):
    def failing_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, stderr="unknown chain")

    monkeypatch.setattr(chain_spec.subprocess, "run", failing_run)

    with pytest.raises(subprocess.CalledProcessError):
        build_spec(tmp_path / "binary", chain="nope")


def test_make_executable(tmp_path):
    binary = tmp_path / "binary"
    binary.write_text("#!/bin/sh\n")
    binary.chmod(0o644)

    make_executable(binary)

    assert os.access(binary, os.X_OK)


def test_write_spec_uses_four_space_indent(tmp_path):
    path = tmp_path / "fork.json"
    write_spec(ChainSpec(**SPEC), path)

    text = path.read_text()
    assert json.loads(text) == SPEC
    assert '\n    "name": "Development"' in text
