"""
Merge fetched state into the dev chain spec.

Only keys under an allowed prefix are copied. The snapshot may be in any
order (quick mode does not preserve key order), so nothing here depends on
the position of a pair in the file.
"""

import json
from pathlib import Path
from typing import Iterable

from forkoff.models import ChainSpec, StoragePair

CODE_KEY = "0x3a636f6465"  # :code
LAST_RUNTIME_UPGRADE_KEY = "0x26aa394eea5630e07c48ae0c9558cef7f9cce9c888469bb1a0dceaa129672ef8"
FORCE_ERA_KEY = "0x5f3e4907f716ac89b6347d15ececedcaf7dad0317324aecae8744b87fc95f2f3"
FORCE_NONE = "0x02"

ALICE = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"
SINGLE_ALICE_MEMBER = "0x04" + ALICE

# Governance keys pinned to //Alice when seeding a test account
ALICE_OVERRIDES = {
    # Sudo.Key
    "0x5c0d1176a568c1f92944340dbfed9e9c530ebca703c85910e7164cb7d1c9e47b": "0x" + ALICE,
    # TechnicalMembership.Members
    "0x3a2d6c9353500637d8f8e3e0fa0bb1c5ba7fb8745735dc3be2a2c61a72c39e78": SINGLE_ALICE_MEMBER,
    # TechnicalCommittee.Members
    "0xed25f63942de25ac5253ba64b5eb64d1ba7fb8745735dc3be2a2c61a72c39e78": SINGLE_ALICE_MEMBER,
    # PhragmenElection.Members, with stake and deposit; depends on the token decimals
    "0xe2e62dd81c48a88f73b6f6463555fd8eba7fb8745735dc3be2a2c61a72c39e78":
        SINGLE_ALICE_MEMBER + "0010a5d4e800000000000000000000000010a5d4e80000000000000000000000",
    # Council.Members
    "0xaebd463ed9925c488c112434d61debc0ba7fb8745735dc3be2a2c61a72c39e78": SINGLE_ALICE_MEMBER,
}


def load_snapshot(path: Path) -> list[StoragePair]:
    with open(path, encoding="utf-8") as f:
        return [tuple(pair) for pair in json.load(f)]


def fork_identity(forked: ChainSpec, original: ChainSpec):
    forked.name = original.name + "-fork"
    forked.id = original.id + "-fork"
    forked.protocolId = original.protocolId


def merge_storage(forked: ChainSpec, pairs: Iterable[StoragePair], prefixes: list[str]) -> int:
    """Copy every pair whose key starts with an allowed prefix. Returns the count copied."""
    allowed = tuple(prefixes)
    top = forked.top
    copied = 0

    for key, value in pairs:
        if key.startswith(allowed):
            top[key] = value
            copied += 1

    return copied


def apply_overrides(forked: ChainSpec, code_hex: str, seed_test_account: bool = False):
    top = forked.top

    # Dropping System.LastRuntimeUpgrade makes on_runtime_upgrade run on the first block
    top.pop(LAST_RUNTIME_UPGRADE_KEY, None)

    top[CODE_KEY] = code_hex

    # Keep the validator set from rotating mid-test
    top[FORCE_ERA_KEY] = FORCE_NONE

    if seed_test_account:
        top.update(ALICE_OVERRIDES)


def splice(
    original: ChainSpec,
    forked: ChainSpec,
    pairs: Iterable[StoragePair],
    prefixes: list[str],
    code_hex: str,
    seed_test_account: bool = False
) -> int:
    fork_identity(forked, original)
    copied = merge_storage(forked, pairs, prefixes)
    apply_overrides(forked, code_hex, seed_test_account)
    return copied
