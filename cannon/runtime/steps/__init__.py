"""
cannon/runtime/steps - Step executors, one per step kind.

STEP_KINDS maps a kind name (the cannonfile section) to its executor.
Adding a kind means adding a module, a schema in cannon/spec/schemas/ and an
entry here; the builder never changes.
"""

from typing import Dict

from cannon.runtime.errors import SchemaError

from .base import BuildRuntime, StepExecutor
from .contract import ContractStep
from .import_step import ImportStep
from .invoke import InvokeStep
from .run import RunStep

STEP_KINDS: Dict[str, StepExecutor] = {
    "contract": ContractStep(),
    "invoke": InvokeStep(),
    "import": ImportStep(),
    "run": RunStep(),
}


def get_executor(kind: str) -> StepExecutor:
    """Look up the executor for a step kind.

    Raises:
        SchemaError: If the kind is not registered.
    """
    try:
        return STEP_KINDS[kind]
    except KeyError:
        raise SchemaError(
            [f"unknown step kind '{kind}'. Valid kinds: {', '.join(sorted(STEP_KINDS))}"]
        ) from None


__all__ = [
    "BuildRuntime",
    "StepExecutor",
    "ContractStep",
    "ImportStep",
    "InvokeStep",
    "RunStep",
    "STEP_KINDS",
    "get_executor",
]
