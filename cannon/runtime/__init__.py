# cannon/runtime package
# Build engine, deployment store and registry client.
#
# Core components:
#   - types: Artifacts, BuildContext, DeploymentRecord
#   - errors: CannonError hierarchy
#   - storage: Deploy manifests on disk
#   - steps: One executor per step kind
#   - builder: ChainBuilder (ordering, caching, persistence)
#   - registry / packages: Publishing and resolving package URLs
#
# Usage:
#     from cannon.runtime import DeploymentStore
#     from cannon.runtime.builder import ChainBuilder
#     outputs = ChainBuilder(name, version, definition, runtime).build(options)

from typing import TYPE_CHECKING

from .errors import (
    CannonError,
    CycleError,
    InsufficientFundsError,
    NoSignerError,
    NotFoundError,
    SchemaError,
    StepExecutionError,
    TransactionFailedError,
    TransactionTimeoutError,
    UnresolvedTemplateError,
)
from .storage import DeploymentStore, write_deployments
from .types import (
    BuildContext,
    BuildState,
    ChainArtifacts,
    ContractArtifact,
    DeploymentRecord,
    TransactionArtifact,
)

# builder and service import the step executors, which import cannon.spec;
# keep them out of package import time
if TYPE_CHECKING:
    from .builder import ChainBuilder as ChainBuilder
    from .builder import EngineConfig as EngineConfig

__all__ = [
    # Errors
    "CannonError",
    "CycleError",
    "InsufficientFundsError",
    "NoSignerError",
    "NotFoundError",
    "SchemaError",
    "StepExecutionError",
    "TransactionFailedError",
    "TransactionTimeoutError",
    "UnresolvedTemplateError",
    # Types
    "BuildContext",
    "BuildState",
    "ChainArtifacts",
    "ContractArtifact",
    "DeploymentRecord",
    "TransactionArtifact",
    # Storage
    "DeploymentStore",
    "write_deployments",
]
