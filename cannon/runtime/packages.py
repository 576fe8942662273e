"""
packages.py - Publish built packages and install published ones.

A published package is its whole deploy manifest, serialized as canonical
JSON, pushed to the content store, and registered under one or more
versions (the real version plus tags such as "latest") for a variant.

Usage:
    url, tx_hashes = publish_package(store, content, registry, "proj:1.0.0",
                                     tags=["latest"], variant="13370-main")
    fetch_package(store, content, registry, "proj:latest", "13370-main")
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .canonical import canonical_json_bytes
from .content import ContentStore
from .errors import CannonError, NotFoundError
from .registry import CannonRegistry
from .storage import DeploymentStore
from .types import parse_package_ref

logger = logging.getLogger(__name__)


def default_variant(chain_id: int, preset: str) -> str:
    """Registry variant for a chain/preset pair."""
    return f"{chain_id}-{preset}"


def publish_package(
    store: DeploymentStore,
    content: ContentStore,
    registry: CannonRegistry,
    ref: str,
    tags: Optional[Sequence[str]] = None,
    variant: str = "",
) -> Tuple[str, List[str]]:
    """Bundle a stored package and register it.

    Returns:
        (content URL, registry transaction hashes).

    Raises:
        NotFoundError: If the package has no manifest in the store.
    """
    name, version = parse_package_ref(ref)
    manifest = store.load_manifest(f"{name}:{version}")
    if manifest is None:
        raise NotFoundError("package", f"{name}:{version}", store.manifest_path(ref))

    url = content.push(canonical_json_bytes(manifest))
    refs = [f"{name}:{version}"] + [f"{name}:{t}" for t in (tags or []) if t != version]
    tx_hashes = registry.publish(refs, url, variant)
    logger.info("Published %s as %s (%d transactions)", ref, url, len(tx_hashes))
    return url, tx_hashes


def _validate_manifest(data: Any, url: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise CannonError(f"package at {url} is not a deploy manifest")
    missing = [k for k in ("name", "version", "deploys") if k not in data]
    if missing:
        raise CannonError(f"package at {url} is missing {', '.join(missing)}")
    return data


def fetch_package(
    store: DeploymentStore,
    content: ContentStore,
    registry: CannonRegistry,
    ref: str,
    variant: str,
) -> str:
    """Resolve, download and install a package into the store.

    `ref` may be "name:version" or "@ipfs:<cid>".

    Returns:
        The installed "name:version" as recorded in the manifest.

    Raises:
        NotFoundError: If the registry has no URL for the ref.
    """
    name, version = parse_package_ref(ref)
    url = registry.resolve(name, version, variant)
    if url is None:
        raise NotFoundError("package", f"{name}:{version} ({variant})")

    try:
        manifest = _validate_manifest(json.loads(content.fetch(url)), url)
    except json.JSONDecodeError as e:
        raise CannonError(f"package at {url} is not valid JSON: {e}") from e

    installed = f"{manifest['name']}:{manifest['version']}"
    store.save_manifest(installed, manifest)
    # Tags resolve to the same manifest; install under the requested version too
    if name == manifest["name"] and version != manifest["version"]:
        store.save_manifest(f"{name}:{version}", manifest)
    logger.info("Fetched %s from %s", installed, url)
    return installed
