"""
types.py - Core dataclasses for build artifacts, context and deployment records.

Artifacts are what a step leaves behind on chain: deployed contracts,
transaction receipts, and the nested outputs of imported packages. A
BuildContext accumulates them step by step and exposes a read-only view to
templates.

Serialization helpers (`*_to_dict` / `*_from_dict`) produce the camelCase
JSON used in deploy manifests.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class BuildState(str, Enum):
    """Lifecycle of a ChainBuilder."""
    INITIALIZED = "initialized"
    RESOLVING = "resolving"
    CACHED = "cached"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Artifacts
# =============================================================================


@dataclass(frozen=True)
class ContractArtifact:
    """A deployed contract."""
    address: str
    abi: List[Dict[str, Any]] = field(default_factory=list, hash=False)
    constructor_args: List[Any] = field(default_factory=list, hash=False)
    source_name: str = ""
    contract_name: str = ""
    deploy_txn_hash: str = ""


@dataclass(frozen=True)
class TransactionArtifact:
    """A mined transaction produced by a step."""
    hash: str
    events: List[Dict[str, Any]] = field(default_factory=list, hash=False)


@dataclass(frozen=True)
class ChainArtifacts:
    """Output of one step (or the merged output of a whole build)."""
    contracts: Dict[str, ContractArtifact] = field(default_factory=dict, hash=False)
    txns: Dict[str, TransactionArtifact] = field(default_factory=dict, hash=False)
    imports: Dict[str, "ChainArtifacts"] = field(default_factory=dict, hash=False)

    def merge(self, other: "ChainArtifacts") -> "ChainArtifacts":
        """Return a new ChainArtifacts with other's entries layered on top."""
        return ChainArtifacts(
            contracts={**self.contracts, **other.contracts},
            txns={**self.txns, **other.txns},
            imports={**self.imports, **other.imports},
        )

    def is_empty(self) -> bool:
        return not (self.contracts or self.txns or self.imports)


def contract_artifact_to_dict(c: ContractArtifact) -> Dict[str, Any]:
    return {
        "address": c.address,
        "abi": copy.deepcopy(c.abi),
        "constructorArgs": copy.deepcopy(c.constructor_args),
        "sourceName": c.source_name,
        "contractName": c.contract_name,
        "deployTxnHash": c.deploy_txn_hash,
    }


def contract_artifact_from_dict(data: Dict[str, Any]) -> ContractArtifact:
    return ContractArtifact(
        address=data["address"],
        abi=list(data.get("abi", [])),
        constructor_args=list(data.get("constructorArgs", [])),
        source_name=data.get("sourceName", ""),
        contract_name=data.get("contractName", ""),
        deploy_txn_hash=data.get("deployTxnHash", ""),
    )


def chain_artifacts_to_dict(artifacts: ChainArtifacts) -> Dict[str, Any]:
    """Convert ChainArtifacts to a JSON-serializable dict (recursive)."""
    return {
        "contracts": {
            name: contract_artifact_to_dict(c) for name, c in artifacts.contracts.items()
        },
        "txns": {
            name: {"hash": t.hash, "events": copy.deepcopy(t.events)}
            for name, t in artifacts.txns.items()
        },
        "imports": {
            name: chain_artifacts_to_dict(i) for name, i in artifacts.imports.items()
        },
    }


def chain_artifacts_from_dict(data: Optional[Dict[str, Any]]) -> ChainArtifacts:
    """Parse ChainArtifacts from a dict; missing sections are empty."""
    data = data or {}
    return ChainArtifacts(
        contracts={
            name: contract_artifact_from_dict(c)
            for name, c in (data.get("contracts") or {}).items()
        },
        txns={
            name: TransactionArtifact(hash=t["hash"], events=list(t.get("events", [])))
            for name, t in (data.get("txns") or {}).items()
        },
        imports={
            name: chain_artifacts_from_dict(i)
            for name, i in (data.get("imports") or {}).items()
        },
    )


# =============================================================================
# Build Context
# =============================================================================


@dataclass
class BuildContext:
    """Accumulating environment of one in-progress build.

    Owned by exactly one ChainBuilder. Artifacts are only ever added, once
    per step name; templates see a deep-copied snapshot via template_vars().
    """
    chain_id: int
    preset: str
    package: Dict[str, str]
    settings: Dict[str, str] = field(default_factory=dict)
    timestamp: int = 0
    outputs: ChainArtifacts = field(default_factory=ChainArtifacts)
    step_artifacts: Dict[str, ChainArtifacts] = field(default_factory=dict)

    def add_artifacts(self, step_name: str, artifacts: ChainArtifacts) -> None:
        """Merge a completed step's artifacts into the context."""
        if step_name in self.step_artifacts:
            raise ValueError(f"artifacts for step '{step_name}' already recorded")
        self.step_artifacts[step_name] = artifacts
        self.outputs = self.outputs.merge(artifacts)

    @property
    def contracts(self) -> Dict[str, ContractArtifact]:
        return self.outputs.contracts

    @property
    def txns(self) -> Dict[str, TransactionArtifact]:
        return self.outputs.txns

    @property
    def imports(self) -> Dict[str, ChainArtifacts]:
        return self.outputs.imports

    def template_vars(self) -> Dict[str, Any]:
        """Snapshot of everything a template may reference."""
        outputs = chain_artifacts_to_dict(self.outputs)
        return {
            "chainId": self.chain_id,
            "preset": self.preset,
            "package": dict(self.package),
            "settings": dict(self.settings),
            "timestamp": self.timestamp,
            "contracts": outputs["contracts"],
            "txns": outputs["txns"],
            "imports": outputs["imports"],
        }


# =============================================================================
# Deployment Record
# =============================================================================


@dataclass
class DeploymentRecord:
    """Persisted result of a completed build for (package, chain id, preset).

    `definition` is the raw definition snapshot; `artifacts` and
    `step_states` are keyed by step name.
    """
    name: str
    version: str
    chain_id: int
    preset: str
    definition: Dict[str, Any]
    options: Dict[str, str] = field(default_factory=dict)
    step_states: Dict[str, str] = field(default_factory=dict)
    artifacts: Dict[str, ChainArtifacts] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def package_ref(self) -> str:
        return f"{self.name}:{self.version}"

    @property
    def outputs(self) -> ChainArtifacts:
        """All step artifacts merged in their stored order."""
        merged = ChainArtifacts()
        for artifacts in self.artifacts.values():
            merged = merged.merge(artifacts)
        return merged


def deployment_record_to_dict(record: DeploymentRecord) -> Dict[str, Any]:
    """Leaf entry for deploys[chainId][preset] in a deploy manifest."""
    return {
        "definition": copy.deepcopy(record.definition),
        "options": dict(record.options),
        "stepStates": dict(record.step_states),
        "artifacts": {
            step: chain_artifacts_to_dict(a) for step, a in record.artifacts.items()
        },
        "updatedAt": record.updated_at.isoformat(),
    }


def deployment_record_from_dict(
    name: str,
    version: str,
    chain_id: int,
    preset: str,
    data: Dict[str, Any],
    fallback_definition: Optional[Dict[str, Any]] = None,
) -> DeploymentRecord:
    """Parse a manifest leaf, falling back to the top-level definition."""
    updated = data.get("updatedAt")
    return DeploymentRecord(
        name=name,
        version=version,
        chain_id=int(chain_id),
        preset=preset,
        definition=copy.deepcopy(data.get("definition") or fallback_definition or {}),
        options=dict(data.get("options") or {}),
        step_states=dict(data.get("stepStates") or {}),
        artifacts={
            step: chain_artifacts_from_dict(a)
            for step, a in (data.get("artifacts") or {}).items()
        },
        updated_at=datetime.fromisoformat(updated) if updated else datetime.now(timezone.utc),
    )


def parse_package_ref(ref: str) -> tuple[str, str]:
    """Split "name:version" (version defaults to "latest")."""
    if not ref:
        raise ValueError("empty package reference")
    name, sep, version = ref.partition(":")
    if not name:
        raise ValueError(f"invalid package reference: {ref!r}")
    return name, (version if sep and version else "latest")
