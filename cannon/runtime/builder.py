"""
builder.py - Execute a definition against a chain, reusing cached step results.

A ChainBuilder owns exactly one BuildContext and walks the definition's
steps in topological order, one at a time:

    inject config -> fingerprint -> (cache hit: reuse artifacts)
                                 -> (miss: exec, record fingerprint)

Only a fully successful build is persisted. A failing step stops the build;
artifacts of the steps that already completed stay on `builder.outputs` for
inspection but are never written to the store.

Usage:
    from cannon.runtime.builder import ChainBuilder, EngineConfig

    builder = ChainBuilder("my-protocol", "1.0.0", definition, runtime)
    outputs = builder.build({"owner": "0xabc..."})
    print(outputs.contracts["Token"].address)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from cannon.spec.graph import topological_order
from cannon.spec.types import Definition, StepSpec

from .errors import (
    CannonError,
    CycleError,
    InsufficientFundsError,
    NoSignerError,
    NotFoundError,
    SchemaError,
    StepExecutionError,
    UnresolvedTemplateError,
)
from .steps import BuildRuntime, get_executor
from .storage import write_deployments
from .types import BuildContext, BuildState, ChainArtifacts, DeploymentRecord

logger = logging.getLogger(__name__)

# Precondition failures keep their own type; the builder only tags them with
# the failing step instead of wrapping them.
FRAMEWORK_ERRORS = (
    SchemaError,
    CycleError,
    UnresolvedTemplateError,
    NotFoundError,
    NoSignerError,
    InsufficientFundsError,
)


def _nested_step_name(step: str, inner: Optional[str]) -> str:
    """Name a failure raised inside an import, e.g. import.oracle > contract.Feed."""
    return f"{step} > {inner}" if inner and inner != step else step


@dataclass(frozen=True)
class EngineConfig:
    """Per-build switches.

    Attributes:
        persist: Save the deployment record when the build succeeds.
        wipe: Ignore every stored fingerprint and rebuild from scratch.
        upgrade_from: "name:version" whose record for the same chain and
            preset seeds the cache instead of this package's own.
        deployments_dir: Also write <dir>/<Contract>.json files when set.
    """

    persist: bool = True
    wipe: bool = False
    upgrade_from: Optional[str] = None
    deployments_dir: Optional[Path] = None


@dataclass
class StepOutcome:
    """What happened to one step during a build."""

    step_name: str
    status: str  # "cached" | "executed" | "failed"
    state: Optional[str] = None
    duration_ms: int = 0
    error: Optional[str] = None


@dataclass
class _Baseline:
    step_states: Dict[str, str] = field(default_factory=dict)
    artifacts: Dict[str, ChainArtifacts] = field(default_factory=dict)
    options: Dict[str, str] = field(default_factory=dict)


class ChainBuilder:
    """Builds one package version for one chain and preset."""

    def __init__(
        self,
        name: str,
        version: str,
        definition: Definition,
        runtime: BuildRuntime,
        preset: str = "main",
        config: Optional[EngineConfig] = None,
    ):
        self.name = name
        self.version = version
        self.definition = definition
        self.runtime = runtime
        self.preset = preset
        self.config = config or EngineConfig()

        self.state = BuildState.INITIALIZED
        self.current_step: Optional[str] = None
        self.step_results: List[StepOutcome] = []
        self.ctx: Optional[BuildContext] = None

    @property
    def package_ref(self) -> str:
        return f"{self.name}:{self.version}"

    @property
    def chain_id(self) -> int:
        return self.runtime.effective_chain_id

    @property
    def outputs(self) -> ChainArtifacts:
        """Artifacts gathered so far (partial after a failure)."""
        return self.ctx.outputs if self.ctx else ChainArtifacts()

    def _transition(self, state: BuildState, step: Optional[str] = None) -> None:
        self.state = state
        self.current_step = step
        logger.debug("%s [%s/%s] -> %s %s", self.package_ref, self.chain_id, self.preset,
                     state.value, step or "")

    # -------------------------------------------------------------------------
    # Cache baseline
    # -------------------------------------------------------------------------

    def _load_baseline(self) -> _Baseline:
        store = self.runtime.store
        own = store.try_load(self.package_ref, self.chain_id, self.preset)
        own_options = dict(own.options) if own else {}

        if self.config.wipe:
            logger.info("Wipe requested for %s: ignoring cached steps", self.package_ref)
            return _Baseline(options=own_options)

        if self.config.upgrade_from:
            seed = store.try_load(self.config.upgrade_from, self.chain_id, self.preset)
            if seed is None:
                logger.warning(
                    "No deployment of %s on chain %s (preset %s) to upgrade from; building fresh",
                    self.config.upgrade_from, self.chain_id, self.preset,
                )
                return _Baseline(options=own_options)
            logger.info("Upgrading %s from %s", self.package_ref, seed.package_ref)
            return _Baseline(dict(seed.step_states), dict(seed.artifacts), dict(seed.options))

        if own is None:
            return _Baseline()
        return _Baseline(dict(own.step_states), dict(own.artifacts), own_options)

    def _merge_options(
        self, stored: Mapping[str, str], options: Mapping[str, str]
    ) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Return (settings for this build, options to persist).

        Only options a caller supplied are persisted; setting defaults are
        always taken from the current definition.
        """
        declared = {s.name for s in self.definition.settings}
        persisted: Dict[str, str] = {}
        for key, value in stored.items():
            if key in declared:
                persisted[key] = value
            else:
                logger.info("Dropping stored option %s: no longer a setting of %s",
                            key, self.package_ref)
        for key, value in options.items():
            if key not in declared:
                logger.debug("Option %s is not a declared setting of %s", key, self.package_ref)
            persisted[key] = str(value)
        return {**self.definition.setting_defaults(), **persisted}, persisted

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(self, options: Optional[Mapping[str, str]] = None) -> ChainArtifacts:
        """Run every step and return the merged artifacts.

        Raises:
            StepExecutionError: A step failed during execution.
            CannonError: A precondition failed (tagged with step_name and
                partial_outputs when raised inside a step).
        """
        order = topological_order(self.definition)
        baseline = self._load_baseline()
        settings, persisted = self._merge_options(baseline.options, options or {})

        self.step_results = []
        self.ctx = BuildContext(
            chain_id=self.chain_id,
            preset=self.preset,
            package={"name": self.name, "version": self.version},
            settings=settings,
            timestamp=int(time.time()),
        )
        step_states: Dict[str, str] = {}

        logger.info(
            "Building %s on chain %s (preset %s): %d steps",
            self.package_ref, self.chain_id, self.preset, len(order),
        )

        for step in order:
            step_states[step.name] = self._run_step(step, baseline)

        self._transition(BuildState.COMPLETED)
        executed = sum(1 for r in self.step_results if r.status == "executed")
        logger.info(
            "Build of %s complete: %d executed, %d cached",
            self.package_ref, executed, len(self.step_results) - executed,
        )

        if self.config.persist:
            self.runtime.store.save(DeploymentRecord(
                name=self.name,
                version=self.version,
                chain_id=self.chain_id,
                preset=self.preset,
                definition=self.definition.to_dict(),
                options=persisted,
                step_states=step_states,
                artifacts=dict(self.ctx.step_artifacts),
                updated_at=datetime.now(timezone.utc),
            ))
        if self.config.deployments_dir:
            write_deployments(self.ctx.outputs, self.config.deployments_dir)

        return self.ctx.outputs

    def _run_step(self, step: StepSpec, baseline: _Baseline) -> str:
        """Run (or reuse) one step; returns its fingerprint."""
        assert self.ctx is not None
        started = time.monotonic()
        self._transition(BuildState.RESOLVING, step.name)
        state: Optional[str] = None

        try:
            executor = get_executor(step.kind)
            config = executor.config_inject(self.ctx, step.config)
            state = executor.get_state(self.runtime, self.ctx, config)

            cached = baseline.artifacts.get(step.name)
            if cached is not None and baseline.step_states.get(step.name) == state:
                self._transition(BuildState.CACHED, step.name)
                logger.info("Step %s: cached", step.name)
                self.ctx.add_artifacts(step.name, cached)
                self._record(step.name, "cached", state, started)
                return state

            self._transition(BuildState.EXECUTING, step.name)
            logger.info("Step %s: executing", step.name)
            artifacts = executor.exec(self.runtime, self.ctx, config, step.short_name)
            self.ctx.add_artifacts(step.name, artifacts)
            self._record(step.name, "executed", state, started)
            return state

        except FRAMEWORK_ERRORS as e:
            self._fail(step.name, state, started, e)
            e.step_name = _nested_step_name(step.name, e.step_name)
            e.partial_outputs = self.ctx.outputs
            raise
        except StepExecutionError as e:
            # Failure inside a nested import build: keep the innermost cause
            self._fail(step.name, state, started, e)
            raise StepExecutionError(
                _nested_step_name(step.name, e.step_name), e.cause, self.ctx.outputs,
            ) from e
        except Exception as e:
            self._fail(step.name, state, started, e)
            raise StepExecutionError(step.name, e, self.ctx.outputs) from e

    def _record(self, name: str, status: str, state: Optional[str], started: float,
                error: Optional[str] = None) -> None:
        self.step_results.append(StepOutcome(
            step_name=name,
            status=status,
            state=state,
            duration_ms=int((time.monotonic() - started) * 1000),
            error=error,
        ))

    def _fail(self, name: str, state: Optional[str], started: float, error: BaseException) -> None:
        self._record(name, "failed", state, started, str(error))
        self._transition(BuildState.FAILED, name)
        level = logging.WARNING if isinstance(error, CannonError) and error.retryable else logging.ERROR
        logger.log(level, "Step %s of %s failed: %s", name, self.package_ref, error)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_outputs(self) -> Optional[ChainArtifacts]:
        """Stored artifacts for this package/chain/preset, or None if never built."""
        return self.runtime.store.get_outputs(self.package_ref, self.chain_id, self.preset)
