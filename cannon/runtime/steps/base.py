"""
base.py - Abstract base class for step executors and the build runtime.

Every step kind implements the same capability set:
- validate(): structural check of a raw config (no network)
- config_inject(): resolve templates against the context (pure)
- get_state(): deterministic fingerprint of everything with side effects
- exec(): perform the side effect and return artifacts

Executors do NOT own:
- Execution order or caching (that's the builder's job)
- Persistence (that's the store's job, after the whole build succeeds)
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from cannon.runtime.artifacts import ArtifactProvider, StaticArtifactProvider
from cannon.runtime.canonical import state_hash
from cannon.runtime.chain import ChainProvider, Signer, TransactionReceipt
from cannon.runtime.errors import InsufficientFundsError, SchemaError
from cannon.runtime.storage import DeploymentStore
from cannon.runtime.types import BuildContext, ChainArtifacts
from cannon.spec.loader import load_schema, schema_errors
from cannon.spec.templating import render

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildRuntime:
    """Collaborators passed explicitly into every executor call.

    Attributes:
        provider: Chain access (signers, transactions, receipts).
        store: Deployment store used by imports and persistence.
        artifacts: Compiled contract lookup.
        base_dir: Directory that relative `run` script paths resolve against.
        receipt_timeout: Seconds to wait per receipt (None waits forever).
        chain_id: Overrides provider.chain_id when set.
        import_stack: Package refs currently being imported (cycle guard).
    """

    provider: ChainProvider
    store: DeploymentStore
    artifacts: ArtifactProvider = field(default_factory=StaticArtifactProvider)
    base_dir: Path = field(default_factory=Path.cwd)
    receipt_timeout: Optional[float] = None
    chain_id: Optional[int] = None
    import_stack: Tuple[str, ...] = ()

    @property
    def effective_chain_id(self) -> int:
        return self.chain_id if self.chain_id is not None else self.provider.chain_id

    def signer_for(self, address: Optional[str] = None) -> Signer:
        """Resolve a funded signer (explicit address, else default)."""
        signer = self.provider.resolve_signer(address)
        if self.provider.get_balance(signer.address) <= 0:
            raise InsufficientFundsError(signer.address)
        return signer

    def wait(self, tx_hash: str) -> TransactionReceipt:
        """Wait for a submitted transaction; never abandons it silently."""
        return self.provider.wait_for_transaction(tx_hash, timeout=self.receipt_timeout)

    def nested(self, package_ref: str, chain_id: Optional[int] = None) -> "BuildRuntime":
        """Runtime for a nested import build."""
        return dataclasses.replace(
            self,
            import_stack=self.import_stack + (package_ref,),
            chain_id=chain_id if chain_id is not None else self.chain_id,
        )


class StepExecutor(ABC):
    """Abstract base class for one step kind."""

    kind: str = ""

    @property
    def schema(self) -> Dict[str, Any]:
        return load_schema(self.kind)

    def validate(self, raw_config: Mapping[str, Any]) -> Dict[str, Any]:
        """Check a raw config against the kind's schema.

        Raises:
            SchemaError: If the config does not match.
        """
        errors = schema_errors(raw_config, self.schema)
        if errors:
            raise SchemaError(errors, location=f"{self.kind} step")
        return copy.deepcopy(dict(raw_config))

    def config_inject(self, ctx: BuildContext, config: Mapping[str, Any]) -> Dict[str, Any]:
        """Resolve every template in config against the context."""
        return render(dict(config), ctx.template_vars())

    def get_state(
        self, runtime: BuildRuntime, ctx: BuildContext, config: Mapping[str, Any]
    ) -> str:
        """Fingerprint of the resolved config."""
        return state_hash({"kind": self.kind, "config": config})

    @abstractmethod
    def exec(
        self,
        runtime: BuildRuntime,
        ctx: BuildContext,
        config: Mapping[str, Any],
        name: str,
    ) -> ChainArtifacts:
        """Perform the step and return its artifacts.

        Args:
            runtime: Collaborators for this build.
            ctx: Current build context (read-only for executors).
            config: Resolved config from config_inject().
            name: The step's short name; artifacts are keyed by it.
        """
        ...
