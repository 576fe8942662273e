"""
contract.py - Deploy a compiled contract.

    contract:
      Token:
        artifact: Token
        args: ["{{ settings.owner }}", "1000"]
        from: "0xabc..."        # optional, default signer otherwise
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from cannon.runtime.canonical import bytes_hash, state_hash
from cannon.runtime.errors import CannonError
from cannon.runtime.types import BuildContext, ChainArtifacts, ContractArtifact

from .base import BuildRuntime, StepExecutor

logger = logging.getLogger(__name__)


class ContractStep(StepExecutor):
    """Deploys `artifact` with constructor `args`."""

    kind = "contract"

    def config_inject(self, ctx: BuildContext, config: Mapping[str, Any]) -> Dict[str, Any]:
        resolved = super().config_inject(ctx, config)
        resolved.setdefault("args", [])
        return resolved

    def get_state(self, runtime: BuildRuntime, ctx: BuildContext, config: Mapping[str, Any]) -> str:
        # Recompiled bytecode must redeploy even when the config is unchanged
        source = runtime.artifacts.get_artifact(config["artifact"])
        return state_hash({
            "kind": self.kind,
            "config": config,
            "bytecode": bytes_hash(source.bytecode),
        })

    def exec(self, runtime, ctx, config, name) -> ChainArtifacts:
        source = runtime.artifacts.get_artifact(config["artifact"])
        signer = runtime.signer_for(config.get("from"))
        args = list(config.get("args", []))

        logger.info("Deploying %s (%s) from %s", name, source.contract_name, signer.address)
        tx_hash = runtime.provider.deploy_contract(signer, source.abi, source.bytecode, args)
        receipt = runtime.wait(tx_hash)
        if not receipt.contract_address:
            raise CannonError(f"deployment of {name} produced no contract address (tx {tx_hash})")

        return ChainArtifacts(contracts={
            name: ContractArtifact(
                address=receipt.contract_address,
                abi=list(source.abi),
                constructor_args=args,
                source_name=source.source_name,
                contract_name=source.contract_name,
                deploy_txn_hash=tx_hash,
            )
        })
