#!/usr/bin/env python3
"""
Fork a live chain into a local dev chain spec.

Downloads the full state of the node behind HTTP_RPC_ENDPOINT (pinned to its
finalized head), copies the storage of every non-skipped module into the dev
spec generated by the local node binary, and swaps in the local runtime WASM.

Expects in DATA_DIR:
  binary        node binary used for build-spec
  runtime.wasm  runtime the fork should run
  schema.json   optional custom types ({"types": {...}})

Writes DATA_DIR/storage.json (state snapshot), DATA_DIR/genesis.json (spec of
the live chain) and DATA_DIR/fork.json (the forked spec).
"""

import argparse
import asyncio
import json
import sys
import time
from typing import Optional

from forkoff.chain_spec import build_specs, make_executable, write_spec
from forkoff.config import Settings, settings as default_settings
from forkoff.console import banner, error, log, success, warn
from forkoff.fetcher import fetch_state
from forkoff.metadata import decode_metadata, module_prefixes, storage_module_names
from forkoff.rpc import NodeRpc
from forkoff.splice import load_snapshot, splice


def check_prerequisites(settings: Settings):
    """Exit before any network call if the binary or runtime is missing."""
    if not settings.binary_path.exists():
        error(f'Binary missing. Copy the binary of your node to {settings.DATA_DIR} and rename it to "binary"')
    make_executable(settings.binary_path)

    if not settings.wasm_path.exists():
        error(f'WASM missing. Copy the runtime WASM blob to {settings.DATA_DIR} and rename it to "runtime.wasm"')


def load_custom_types(settings: Settings) -> Optional[dict]:
    if not settings.schema_path.exists():
        warn("Custom schema missing, using default types.")
        return None
    schema = json.loads(settings.schema_path.read_text())
    return schema.get("types")


async def run(settings: Settings):
    check_prerequisites(settings)

    code_hex = "0x" + settings.wasm_path.read_bytes().hex()
    custom_types = load_custom_types(settings)

    async with NodeRpc(settings.HTTP_RPC_ENDPOINT, timeout=settings.RPC_TIMEOUT_SECONDS) as rpc:
        # Metadata goes first so a decoding problem shows up before a long download
        banner("PHASE 1: Collecting module prefixes from metadata")
        metadata = decode_metadata(await rpc.get_metadata(), custom_types)
        prefixes = module_prefixes(storage_module_names(metadata), settings.SKIPPED_MODULES)
        log(f"Copying storage under {len(prefixes)} prefixes")

        banner("PHASE 2: Fetching state of the live chain")
        try:
            await fetch_state(rpc, settings)
        except Exception as e:
            error(f"Failed to fetch storage: {e}. "
                  f"The partial snapshot is unusable: delete {settings.storage_path} and rerun.")

    banner("PHASE 3: Generating chain specs")
    original, forked = build_specs(settings.binary_path, settings.CHAIN)
    write_spec(original, settings.original_spec_path)

    banner("PHASE 4: Splicing state into the forked spec")
    copied = splice(
        original,
        forked,
        load_snapshot(settings.storage_path),
        prefixes,
        code_hex,
        seed_test_account=settings.ALICE
    )
    write_spec(forked, settings.forked_spec_path)
    success(f"Copied {copied} storage entries")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fork the state of a live chain into a local dev chain spec"
    )
    parser.add_argument("--endpoint", help="HTTP RPC endpoint of the live node")
    parser.add_argument("--chunks-level", type=int, help="Split the download into 256^N chunks")
    parser.add_argument("--quick", action="store_true", help="Fetch the deepest level of chunks concurrently")
    parser.add_argument("--refresh", action="store_true", help="Fetch fresh state even if a snapshot exists")
    parser.add_argument("--chain", help="Chain passed to build-spec (the fork uses <chain>-dev)")
    parser.add_argument("--alice", action="store_true", help="Pin sudo and governance keys to //Alice")
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace, base: Settings) -> Settings:
    overrides = {}
    if args.endpoint:
        overrides["HTTP_RPC_ENDPOINT"] = args.endpoint
    if args.chunks_level is not None:
        overrides["FORK_CHUNKS_LEVEL"] = args.chunks_level
    if args.quick:
        overrides["QUICK_MODE"] = True
    if args.refresh:
        overrides["REUSE_EXISTING_SNAPSHOT"] = False
    if args.chain:
        overrides["CHAIN"] = args.chain
    if args.alice:
        overrides["ALICE"] = True
    return base.model_copy(update=overrides)


def main(argv=None):
    start_time = time.time()
    settings = settings_from_args(parse_args(argv), default_settings)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        warn("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        error(f"Unexpected error: {e}")

    elapsed = time.time() - start_time
    success(f"Forked genesis generated in {elapsed:.0f}s. Find it at {settings.forked_spec_path}")


if __name__ == "__main__":
    main()
