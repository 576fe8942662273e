"""
import_step.py - Materialize a previously built package as a nested build.

    import:
      oracle:
        source: "oracle-pkg:{{ settings.oracleVersion }}"
        preset: main                  # default "main"
        chainId: 1                    # default: the current chain
        options: {feed: "eth"}        # override the package's stored options

The target package must already have a deployment record for the chain and
preset. Its definition is rebuilt by an independent, non-persisting
ChainBuilder; when nothing changed every nested step is a cache hit, so the
import simply re-exports the stored outputs under imports.<name>.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from cannon.runtime.canonical import state_hash
from cannon.runtime.errors import CycleError
from cannon.runtime.types import BuildContext, ChainArtifacts, parse_package_ref

from .base import BuildRuntime, StepExecutor

logger = logging.getLogger(__name__)

DEFAULT_PRESET = "main"


class ImportStep(StepExecutor):
    """Imports another package's deployment."""

    kind = "import"

    def config_inject(self, ctx: BuildContext, config: Mapping[str, Any]) -> Dict[str, Any]:
        resolved = super().config_inject(ctx, config)
        resolved["preset"] = resolved.get("preset") or DEFAULT_PRESET
        if "options" in resolved:
            resolved["options"] = {k: str(v) for k, v in resolved["options"].items()}
        return resolved

    def _chain_id(self, runtime: BuildRuntime, config: Mapping[str, Any]) -> int:
        return int(config.get("chainId") or runtime.effective_chain_id)

    def get_state(self, runtime: BuildRuntime, ctx: BuildContext, config: Mapping[str, Any]) -> str:
        # Rebuilding the imported package changes its step states, and with
        # them this import's fingerprint
        record = runtime.store.try_load(
            config["source"], self._chain_id(runtime, config), config["preset"]
        )
        return state_hash({
            "kind": self.kind,
            "config": config,
            "upstream": record.step_states if record else None,
        })

    def exec(self, runtime, ctx, config, name) -> ChainArtifacts:
        from cannon.runtime.builder import ChainBuilder, EngineConfig
        from cannon.spec.loader import parse

        source = config["source"]
        pkg_name, version = parse_package_ref(source)
        package_ref = f"{pkg_name}:{version}"
        if package_ref in runtime.import_stack:
            raise CycleError(list(runtime.import_stack) + [package_ref])

        preset = config["preset"]
        chain_id = self._chain_id(runtime, config)
        record = runtime.store.load(package_ref, chain_id, preset)

        options = {**record.options, **config.get("options", {})}
        logger.info("Importing %s (chain %s, preset %s) as %s", package_ref, chain_id, preset, name)

        builder = ChainBuilder(
            name=pkg_name,
            version=version,
            definition=parse(record.definition),
            runtime=runtime.nested(package_ref, chain_id),
            preset=preset,
            config=EngineConfig(persist=False),
        )
        outputs = builder.build(options)

        return ChainArtifacts(imports={name: outputs})
