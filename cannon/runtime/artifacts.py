"""
artifacts.py - Compiled contract artifact providers.

Compilation is out of scope: providers only read what a toolchain already
produced. HardhatArtifactProvider understands the artifacts/ tree written by
hardhat and foundry-style layouts that use the same JSON shape.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractSource:
    """ABI and bytecode of a compiled contract."""
    contract_name: str
    source_name: str
    abi: List[Dict[str, Any]] = field(default_factory=list, hash=False)
    bytecode: str = "0x"


class ArtifactProvider(ABC):
    """Look up compiled contracts by name."""

    @abstractmethod
    def get_artifact(self, contract_name: str) -> ContractSource:
        """Return the compiled artifact, or raise NotFoundError."""
        ...


class StaticArtifactProvider(ArtifactProvider):
    """Provider backed by an in-memory mapping (tests, scripted builds)."""

    def __init__(self, artifacts: Optional[Mapping[str, ContractSource]] = None):
        self._artifacts: Dict[str, ContractSource] = dict(artifacts or {})

    def add(self, source: ContractSource) -> None:
        self._artifacts[source.contract_name] = source

    def get_artifact(self, contract_name: str) -> ContractSource:
        try:
            return self._artifacts[contract_name]
        except KeyError:
            raise NotFoundError("artifact", contract_name) from None


class HardhatArtifactProvider(ArtifactProvider):
    """Reads <artifacts_dir>/**/<Name>.json files."""

    def __init__(self, artifacts_dir: Path):
        self.artifacts_dir = Path(artifacts_dir)
        self._cache: Dict[str, ContractSource] = {}

    def _find(self, contract_name: str) -> Optional[Path]:
        if not self.artifacts_dir.is_dir():
            return None
        matches = sorted(
            p for p in self.artifacts_dir.rglob(f"{contract_name}.json")
            if not p.name.endswith(".dbg.json")
        )
        if len(matches) > 1:
            logger.warning(
                "Multiple artifacts named %s under %s, using %s",
                contract_name, self.artifacts_dir, matches[0],
            )
        return matches[0] if matches else None

    def get_artifact(self, contract_name: str) -> ContractSource:
        if contract_name in self._cache:
            return self._cache[contract_name]

        path = self._find(contract_name)
        if path is None:
            raise NotFoundError("artifact", contract_name, self.artifacts_dir)

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        bytecode = data.get("bytecode", "0x")
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object", "0x")

        source = ContractSource(
            contract_name=data.get("contractName", contract_name),
            source_name=data.get("sourceName", ""),
            abi=list(data.get("abi", [])),
            bytecode=bytecode,
        )
        self._cache[contract_name] = source
        return source
