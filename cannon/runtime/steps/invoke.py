"""
invoke.py - Call a function on one or more deployed contracts.

    invoke:
      mint:
        target: [Token]               # contract step names or raw addresses
        func: mint
        args: ["{{ settings.owner }}", "100"]
        depends: [contract.Token]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Tuple

from cannon.runtime.canonical import state_hash
from cannon.runtime.errors import NotFoundError
from cannon.runtime.types import BuildContext, ChainArtifacts, TransactionArtifact

from .base import BuildRuntime, StepExecutor

logger = logging.getLogger(__name__)


def resolve_target(ctx: BuildContext, target: str) -> Tuple[str, List[Dict[str, Any]]]:
    """Map a target to (address, abi): a known contract name or a 0x address."""
    contract = ctx.contracts.get(target)
    if contract is not None:
        return contract.address, list(contract.abi)
    if target.startswith("0x"):
        return target, []
    raise NotFoundError("contract", target)


def _has_function(abi: List[Dict[str, Any]], func: str) -> bool:
    functions = [e.get("name") for e in abi if e.get("type") == "function"]
    return not functions or func in functions


class InvokeStep(StepExecutor):
    """Sends `func(*args)` to each target, one receipt at a time."""

    kind = "invoke"

    def config_inject(self, ctx: BuildContext, config: Mapping[str, Any]) -> Dict[str, Any]:
        resolved = super().config_inject(ctx, config)
        if isinstance(resolved["target"], str):
            resolved["target"] = [resolved["target"]]
        resolved.setdefault("args", [])
        resolved.setdefault("value", "0")
        return resolved

    def get_state(self, runtime: BuildRuntime, ctx: BuildContext, config: Mapping[str, Any]) -> str:
        # A redeployed target is a different call even with identical config
        addresses = [
            ctx.contracts[t].address if t in ctx.contracts else t
            for t in config["target"]
        ]
        return state_hash({"kind": self.kind, "config": config, "targets": addresses})

    def exec(self, runtime, ctx, config, name) -> ChainArtifacts:
        signer = runtime.signer_for(config.get("from"))
        func = config["func"]
        args = list(config.get("args", []))
        value = int(config.get("value", "0"))

        last_hash = ""
        events: List[Dict[str, Any]] = []
        for target in config["target"]:
            address, abi = resolve_target(ctx, target)
            if not _has_function(abi, func):
                raise NotFoundError("function", f"{target}.{func}")

            logger.info("Invoking %s.%s on %s", target, func, address)
            tx_hash = runtime.provider.send_transaction(signer, address, abi, func, args, value)
            receipt = runtime.wait(tx_hash)
            last_hash = receipt.transaction_hash
            events.extend(receipt.logs)

        return ChainArtifacts(txns={name: TransactionArtifact(hash=last_hash, events=events)})
