"""
Storage prefixes of the modules that get copied into the fork.

Every module (pallet) stores its items under twox128(module name). The
runtime metadata lists the modules that declare storage; all of them are
copied except a short skip list of consensus and session modules, whose
state would not make sense on a freshly started dev chain.
"""

from typing import Any, Iterable, Optional

import xxhash
from scalecodec.base import RuntimeConfigurationObject, ScaleBytes
from scalecodec.type_registry import load_type_registry_preset

from forkoff.console import log

# System.Account is always copied, even if System itself is skipped
SYSTEM_ACCOUNT_PREFIX = "0x26aa394eea5630e07c48ae0c9558cef7b99d880ec681799c0cf30e8886371da9"


def twox128(name: str) -> str:
    """128-bit xxhash of `name` as used for storage prefixes, 0x-prefixed."""
    data = name.encode()
    digest = b"".join(
        xxhash.xxh64(data, seed=seed).intdigest().to_bytes(8, "little")
        for seed in (0, 1)
    )
    return "0x" + digest.hex()


def decode_metadata(metadata_hex: str, custom_types: Optional[dict] = None) -> Any:
    """SCALE-decode the output of state_getMetadata into plain Python values."""
    runtime_config = RuntimeConfigurationObject()
    runtime_config.update_type_registry(load_type_registry_preset("core"))
    runtime_config.update_type_registry(load_type_registry_preset("legacy"))
    if custom_types:
        runtime_config.update_type_registry({"types": custom_types})

    metadata = runtime_config.create_scale_object("MetadataVersioned", data=ScaleBytes(metadata_hex))
    return metadata.decode()


def _find_module_list(value: Any) -> list:
    # V14+ calls them pallets, older versions modules; the list sits under the version key
    if isinstance(value, dict):
        for key in ("pallets", "modules"):
            if isinstance(value.get(key), list):
                return value[key]
        children = value.values()
    elif isinstance(value, (list, tuple)):
        children = value
    else:
        return []

    for child in children:
        found = _find_module_list(child)
        if found:
            return found
    return []


def storage_module_names(decoded_metadata: Any) -> list[str]:
    """Names of every module that declares storage, in metadata order."""
    return [
        module["name"]
        for module in _find_module_list(decoded_metadata)
        if module.get("storage")
    ]


def module_prefixes(names: Iterable[str], skipped: Iterable[str]) -> list[str]:
    """The always-copied System.Account prefix plus twox128 of each non-skipped module."""
    skipped = set(skipped)
    prefixes = [SYSTEM_ACCOUNT_PREFIX]

    for name in names:
        if name in skipped:
            log(f"skipped {name}")
            continue
        prefixes.append(twox128(name))

    return prefixes
