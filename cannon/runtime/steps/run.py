"""
run.py - Run a user-supplied Python function as a build step.

    run:
      seed:
        exec: scripts/seed.py       # relative to the cannonfile directory
        func: seed
        args: ["{{ contracts.Token.address }}"]
        modified: [data/seed.csv]   # extra files whose content is fingerprinted

The function is called as func(runtime, context_vars, *args) and returns a
dict shaped like ChainArtifacts ({"contracts": ..., "txns": ...}) or None.
Script bodies are ordinary Python modules owned by the project; templates
themselves never execute code.
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cannon.runtime.canonical import file_hash, state_hash
from cannon.runtime.errors import CannonError, NotFoundError
from cannon.runtime.types import BuildContext, ChainArtifacts, chain_artifacts_from_dict

from .base import BuildRuntime, StepExecutor

logger = logging.getLogger(__name__)


def _resolve_path(runtime: BuildRuntime, rel: str) -> Path:
    path = Path(rel)
    if not path.is_absolute():
        path = runtime.base_dir / path
    if not path.exists():
        raise NotFoundError("script file", rel, path)
    return path


def load_function(path: Path, func: str) -> Callable[..., Any]:
    """Import a module from a file path and return one of its callables."""
    spec = importlib.util.spec_from_file_location(f"cannon_run_{path.stem}", path)
    if spec is None or spec.loader is None:
        raise CannonError(f"cannot load script {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    fn = getattr(module, func, None)
    if not callable(fn):
        raise NotFoundError("function", f"{path.name}:{func}", path)
    return fn


class RunStep(StepExecutor):
    """Calls `func` from the `exec` script."""

    kind = "run"

    def config_inject(self, ctx: BuildContext, config: Mapping[str, Any]) -> Dict[str, Any]:
        resolved = super().config_inject(ctx, config)
        resolved.setdefault("args", [])
        resolved.setdefault("modified", [])
        return resolved

    def get_state(self, runtime: BuildRuntime, ctx: BuildContext, config: Mapping[str, Any]) -> str:
        files = [config["exec"]] + list(config.get("modified", []))
        return state_hash({
            "kind": self.kind,
            "config": config,
            "files": {f: file_hash(_resolve_path(runtime, f)) for f in files},
        })

    def exec(self, runtime, ctx, config, name) -> ChainArtifacts:
        fn = load_function(_resolve_path(runtime, config["exec"]), config["func"])
        logger.info("Running %s:%s for step %s", config["exec"], config["func"], name)
        result = fn(runtime, ctx.template_vars(), *config.get("args", []))
        if result is None:
            return ChainArtifacts()
        if not isinstance(result, dict):
            raise CannonError(
                f"run step {name}: {config['func']} must return a dict or None, "
                f"got {type(result).__name__}"
            )
        return chain_artifacts_from_dict(result)
