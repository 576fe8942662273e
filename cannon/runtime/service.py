"""
service.py - Module-level entry points used by the CLI and the API.

Front ends should go through these functions rather than wiring a
ChainBuilder themselves.

Usage:
    from cannon.runtime.service import build, get_outputs, parse_settings

    outputs = build(definition, parse_settings(["owner=0xabc"]), runtime=runtime)
    stored = get_outputs(store, "my-protocol:1.0.0", 13370, "main")
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional

from cannon.spec.types import Definition

from .builder import ChainBuilder, EngineConfig
from .steps import BuildRuntime
from .storage import DeploymentStore
from .types import ChainArtifacts

logger = logging.getLogger(__name__)


def build(
    definition: Definition,
    options: Optional[Mapping[str, str]] = None,
    engine_config: Optional[EngineConfig] = None,
    runtime: Optional[BuildRuntime] = None,
    preset: Optional[str] = None,
) -> ChainArtifacts:
    """Build a definition and return its outputs.

    Args:
        definition: Parsed definition; its name and version identify the package.
        options: Setting overrides (caller wins over stored and default values).
        engine_config: Persistence and cache switches.
        runtime: Chain, store and artifact collaborators (required).
        preset: Preset name; defaults to the configured default preset.
    """
    if runtime is None:
        raise ValueError("a BuildRuntime is required to build")
    if preset is None:
        from cannon.config.runtime_config import get_default_preset
        preset = get_default_preset()

    builder = ChainBuilder(
        name=definition.name,
        version=definition.version,
        definition=definition,
        runtime=runtime,
        preset=preset,
        config=engine_config or EngineConfig(),
    )
    return builder.build(options or {})


def get_outputs(
    store: DeploymentStore,
    package: str,
    chain_id: int,
    preset: str = "main",
) -> Optional[ChainArtifacts]:
    """Stored outputs for a package, or None if it was never built there."""
    return store.get_outputs(package, chain_id, preset)


def parse_settings(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse ["key=value", ...] into a dict.

    Raises:
        ValueError: If an entry has no "=" or an empty key.
    """
    settings: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"invalid setting {pair!r}: expected key=value")
        settings[key] = value
    return settings
