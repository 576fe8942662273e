"""
Test fixtures and utilities for cannon tests.

This module provides reusable fixtures for building packages against the
in-memory chain: a temporary deployment store, a funded chain, a static
artifact provider, and sample definitions.
"""

import sys
from pathlib import Path
from typing import Any, Dict

import pytest

# Add repo root to path so `cannon` imports without installation
_REPO_ROOT = Path(__file__).resolve().parent.parent
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from cannon.config import runtime_config
from cannon.runtime.artifacts import ContractSource, StaticArtifactProvider
from cannon.runtime.chain import InMemoryChain
from cannon.runtime.steps import BuildRuntime
from cannon.runtime.storage import DeploymentStore


TOKEN_ABI = [
    {"type": "constructor", "inputs": [{"name": "supply", "type": "uint256"}]},
    {"type": "function", "name": "mint", "inputs": [{"name": "amount", "type": "uint256"}]},
    {"type": "function", "name": "explode", "inputs": []},
]


# ============================================================================
# Configuration Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Reset cached runtime config and CANNON_* env vars around every test."""
    for var in (
        "CANNON_PACKAGES_DIR",
        "CANNON_CONTENT_DIR",
        "CANNON_DEFAULT_PRESET",
        "CANNON_RECEIPT_TIMEOUT",
        "CANNON_REGISTRY_ADDRESS",
    ):
        monkeypatch.delenv(var, raising=False)
    runtime_config.reset_config()
    yield
    runtime_config.reset_config()


# ============================================================================
# Collaborators
# ============================================================================


@pytest.fixture
def store(tmp_path) -> DeploymentStore:
    """Empty deployment store in a temp directory."""
    return DeploymentStore(tmp_path / "packages")


@pytest.fixture
def chain() -> InMemoryChain:
    """Funded in-memory chain with the default account."""
    return InMemoryChain()


@pytest.fixture
def artifacts() -> StaticArtifactProvider:
    """Artifact provider holding Token and Vault."""
    return StaticArtifactProvider({
        "Token": ContractSource("Token", "contracts/Token.sol", TOKEN_ABI, "0x6080aa"),
        "Vault": ContractSource("Vault", "contracts/Vault.sol", [], "0x6080bb"),
    })


@pytest.fixture
def runtime(chain, store, artifacts, tmp_path) -> BuildRuntime:
    """Build runtime wired to the fixtures above."""
    return BuildRuntime(
        provider=chain,
        store=store,
        artifacts=artifacts,
        base_dir=tmp_path,
    )


# ============================================================================
# Sample Definitions
# ============================================================================


@pytest.fixture
def token_raw() -> Dict[str, Any]:
    """Token + Vault + mint: one implicit and one explicit dependency."""
    return {
        "name": "token-pkg",
        "version": "1.0.0",
        "setting": {
            "supply": {"defaultValue": "1000"},
        },
        "contract": {
            "Token": {"artifact": "Token", "args": ["{{ settings.supply }}"]},
            "Vault": {"artifact": "Vault", "args": ["{{ contracts.Token.address }}"]},
        },
        "invoke": {
            "mint": {
                "target": ["Token"],
                "func": "mint",
                "args": ["5"],
                "depends": ["contract.Token"],
            },
        },
    }


@pytest.fixture
def write_cannonfile(tmp_path):
    """Write a YAML cannonfile and return its path."""
    import yaml

    def _write(raw: Dict[str, Any], name: str = "cannonfile.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(raw, sort_keys=False), encoding="utf-8")
        return path

    return _write
