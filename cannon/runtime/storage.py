"""
storage.py - Durable deployment records (deploy manifests).

The storage layout is:

    <packages_dir>/
      <name>/
        <version>/
          deploy.json      # manifest: top-level definition + deploys[chainId][preset]

Each manifest leaf holds the definition snapshot, effective options,
per-step state fingerprints and per-step artifacts of the last successful
build for that (chain id, preset).

Usage:
    from cannon.runtime.storage import DeploymentStore

    store = DeploymentStore(packages_dir)
    record = store.try_load("my-protocol:1.0.0", 13370, "main")
    store.save(record)
    store.list("my-protocol:1.0.0")   # {(13370, "main")}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .errors import NotFoundError
from .types import (
    ChainArtifacts,
    DeploymentRecord,
    chain_artifacts_to_dict,
    deployment_record_from_dict,
    deployment_record_to_dict,
    parse_package_ref,
)

logger = logging.getLogger(__name__)

MANIFEST_FILE = "deploy.json"

# -----------------------------------------------------------------------------
# Per-manifest locking
# -----------------------------------------------------------------------------
# save() is a read-modify-write of the whole manifest; two builds of the same
# package for different presets must not lose each other's update. This is
# in-process locking; callers running separate processes must serialise
# builds per key themselves.

_MANIFEST_LOCKS: Dict[Path, threading.Lock] = {}
_MANIFEST_LOCKS_LOCK = threading.Lock()


def _get_manifest_lock(path: Path) -> threading.Lock:
    """Get or create the lock guarding one manifest file."""
    key = path.resolve()
    with _MANIFEST_LOCKS_LOCK:
        lock = _MANIFEST_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MANIFEST_LOCKS[key] = lock
        return lock


# -----------------------------------------------------------------------------
# Atomic File I/O Helpers
# -----------------------------------------------------------------------------


def _atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write JSON data to a file atomically.

    Uses a temporary file + os.replace so a reader never observes a
    half-written manifest.
    """
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=path.name + ".",
        dir=parent,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _load_json_safe(path: Path) -> Optional[Dict[str, Any]]:
    """Load a manifest, returning None when missing or corrupt."""
    if not path.exists():
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Corrupt manifest at %s: %s (treating as missing)", path, e)
        return None
    except OSError as e:
        logger.warning("Failed to read manifest at %s: %s", path, e)
        return None

    if not isinstance(data, dict):
        logger.warning("Corrupt manifest at %s: expected an object, got %s (treating as missing)",
                       path, type(data).__name__)
        return None
    return data


# -----------------------------------------------------------------------------
# Deployment Store
# -----------------------------------------------------------------------------


class DeploymentStore:
    """Filesystem-backed store of deploy manifests keyed by package ref."""

    def __init__(self, packages_dir: Path):
        self.packages_dir = Path(packages_dir)

    def manifest_path(self, package: str) -> Path:
        name, version = parse_package_ref(package)
        return self.packages_dir / name / version / MANIFEST_FILE

    def load_manifest(self, package: str) -> Optional[Dict[str, Any]]:
        """Whole manifest document for a package, or None."""
        return _load_json_safe(self.manifest_path(package))

    def save_manifest(self, package: str, manifest: Dict[str, Any]) -> Path:
        """Replace a package's whole manifest (used when installing packages)."""
        path = self.manifest_path(package)
        with _get_manifest_lock(path):
            _atomic_write_json(path, manifest)
        logger.info("Installed manifest for %s at %s", package, path)
        return path

    def try_load(self, package: str, chain_id: int, preset: str) -> Optional[DeploymentRecord]:
        """Like load(), but returns None when there is no record."""
        try:
            return self.load(package, chain_id, preset)
        except NotFoundError:
            return None

    def load(self, package: str, chain_id: int, preset: str) -> DeploymentRecord:
        """Load the record for (package, chain id, preset).

        The chain/preset-specific definition is used when present; otherwise
        the manifest's top-level definition.

        Raises:
            NotFoundError: If no record exists for the key.
        """
        name, version = parse_package_ref(package)
        path = self.manifest_path(package)
        manifest = _load_json_safe(path)
        key = f"{name}:{version}@{chain_id}/{preset}"
        if manifest is None:
            raise NotFoundError("deployment", key, path)

        leaf = (manifest.get("deploys") or {}).get(str(chain_id), {}).get(preset)
        if leaf is None:
            raise NotFoundError("deployment", key, path)

        return deployment_record_from_dict(
            name, version, chain_id, preset, leaf,
            fallback_definition=manifest.get("definition"),
        )

    def save(self, record: DeploymentRecord) -> Path:
        """Atomically write a record, overwriting any previous one for its key."""
        path = self.manifest_path(record.package_ref)
        with _get_manifest_lock(path):
            manifest = _load_json_safe(path) or {
                "name": record.name,
                "version": record.version,
                "deploys": {},
            }
            manifest["definition"] = record.definition
            deploys = manifest.setdefault("deploys", {})
            deploys.setdefault(str(record.chain_id), {})[record.preset] = (
                deployment_record_to_dict(record)
            )
            _atomic_write_json(path, manifest)

        logger.info(
            "Saved deployment %s on chain %s (preset %s): %d steps",
            record.package_ref, record.chain_id, record.preset, len(record.step_states),
        )
        return path

    def list(self, package: str) -> Set[Tuple[int, str]]:
        """All (chain id, preset) keys recorded for a package."""
        manifest = self.load_manifest(package)
        if not manifest:
            return set()
        return {
            (int(chain_id), preset)
            for chain_id, presets in (manifest.get("deploys") or {}).items()
            for preset in presets
        }

    def list_packages(self) -> List[str]:
        """All stored package refs as sorted "name:version" strings."""
        if not self.packages_dir.exists():
            return []
        refs = []
        for manifest in self.packages_dir.glob(f"*/*/{MANIFEST_FILE}"):
            refs.append(f"{manifest.parent.parent.name}:{manifest.parent.name}")
        return sorted(refs)

    def get_outputs(self, package: str, chain_id: int, preset: str) -> Optional[ChainArtifacts]:
        """Merged artifacts of a stored build, or None when never built."""
        record = self.try_load(package, chain_id, preset)
        return record.outputs if record else None


def write_deployments(outputs: ChainArtifacts, deployments_dir: Path) -> List[Path]:
    """Write <dir>/<ContractName>.json with address and ABI per contract.

    Imported packages' contracts go under a subdirectory per import name.
    """
    deployments_dir = Path(deployments_dir)
    written: List[Path] = []
    for name, contract in outputs.contracts.items():
        path = deployments_dir / f"{name}.json"
        _atomic_write_json(path, {"address": contract.address, "abi": contract.abi})
        written.append(path)
    for import_name, nested in outputs.imports.items():
        written.extend(write_deployments(nested, deployments_dir / import_name))
    return written


def outputs_summary(outputs: ChainArtifacts) -> Dict[str, Any]:
    """Compact JSON-friendly view of outputs for CLI and API responses."""
    return chain_artifacts_to_dict(outputs)
