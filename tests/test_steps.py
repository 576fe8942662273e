"""Tests for the step executors.

Each executor is exercised directly against the in-memory chain: validation,
config injection, fingerprints and execution.
"""

import textwrap

import pytest

from cannon.runtime.chain import DEFAULT_ACCOUNT, InMemoryChain
from cannon.runtime.errors import (
    CycleError,
    InsufficientFundsError,
    NoSignerError,
    NotFoundError,
    SchemaError,
    TransactionFailedError,
    UnresolvedTemplateError,
)
from cannon.runtime.steps import (
    STEP_KINDS,
    BuildRuntime,
    ContractStep,
    ImportStep,
    InvokeStep,
    RunStep,
    get_executor,
)
from cannon.runtime.types import BuildContext, ChainArtifacts, ContractArtifact


@pytest.fixture
def ctx():
    return BuildContext(
        chain_id=13370,
        preset="main",
        package={"name": "pkg", "version": "1.0.0"},
        settings={"supply": "1000", "owner": DEFAULT_ACCOUNT},
    )


# ============================================================================
# Registry
# ============================================================================


class TestStepRegistry:
    """Tests for STEP_KINDS / get_executor."""

    def test_all_kinds_registered(self):
        """Every step kind has an executor whose kind matches its key."""
        assert set(STEP_KINDS) == {"contract", "invoke", "import", "run"}
        for kind, executor in STEP_KINDS.items():
            assert executor.kind == kind

    def test_unknown_kind_raises(self):
        """Unknown kinds raise SchemaError."""
        with pytest.raises(SchemaError):
            get_executor("deploy")

    def test_validate_rejects_bad_config(self):
        """validate() checks the kind's schema without touching the network."""
        with pytest.raises(SchemaError):
            get_executor("contract").validate({"args": []})
        assert get_executor("contract").validate({"artifact": "Token"}) == {"artifact": "Token"}


# ============================================================================
# contract
# ============================================================================


class TestContractStep:
    """Tests for ContractStep."""

    def test_config_inject_resolves_and_defaults(self, ctx):
        """Templates resolve and args default to an empty list."""
        step = ContractStep()
        assert step.config_inject(ctx, {"artifact": "Token"}) == {"artifact": "Token", "args": []}
        assert step.config_inject(ctx, {"artifact": "Token", "args": ["{{ settings.supply }}"]}) == {
            "artifact": "Token", "args": ["1000"],
        }

    def test_config_inject_is_pure(self, ctx):
        """Same context and config always give the same resolved config."""
        step = ContractStep()
        raw = {"artifact": "Token", "args": ["{{ settings.supply }}", "{{ chainId }}"]}
        results = [step.config_inject(ctx, raw) for _ in range(3)]
        assert results[0] == results[1] == results[2]
        assert raw == {"artifact": "Token", "args": ["{{ settings.supply }}", "{{ chainId }}"]}

    def test_config_inject_unresolved_raises(self, ctx):
        """Referencing a contract that has not been deployed fails."""
        with pytest.raises(UnresolvedTemplateError):
            ContractStep().config_inject(ctx, {"artifact": "Token", "args": ["{{ contracts.X.address }}"]})

    def test_state_tracks_config_and_bytecode(self, runtime, ctx, artifacts):
        """Fingerprint changes with args and with recompiled bytecode."""
        step = ContractStep()
        base = step.get_state(runtime, ctx, {"artifact": "Token", "args": ["1"]})

        assert base == step.get_state(runtime, ctx, {"artifact": "Token", "args": ["1"]})
        assert base != step.get_state(runtime, ctx, {"artifact": "Token", "args": ["2"]})

        from cannon.runtime.artifacts import ContractSource
        artifacts.add(ContractSource("Token", "contracts/Token.sol", [], "0x6080ff"))
        assert base != step.get_state(runtime, ctx, {"artifact": "Token", "args": ["1"]})

    def test_exec_deploys(self, runtime, ctx, chain):
        """exec deploys the artifact and returns a contract keyed by short name."""
        artifacts = ContractStep().exec(runtime, ctx, {"artifact": "Token", "args": ["1"]}, "Token")

        token = artifacts.contracts["Token"]
        assert token.address.startswith("0x") and len(token.address) == 42
        assert token.constructor_args == ["1"]
        assert token.contract_name == "Token"
        assert token.source_name == "contracts/Token.sol"
        assert chain.has_code(token.address)
        assert chain.transactions[-1]["type"] == "deploy"

    def test_exec_missing_artifact(self, runtime, ctx):
        """An unknown artifact is NotFoundError."""
        with pytest.raises(NotFoundError):
            ContractStep().exec(runtime, ctx, {"artifact": "Nope", "args": []}, "Nope")

    def test_exec_without_signer(self, store, artifacts, ctx):
        """No default signer raises NoSignerError."""
        runtime = BuildRuntime(provider=InMemoryChain(accounts={}), store=store, artifacts=artifacts)
        with pytest.raises(NoSignerError):
            ContractStep().exec(runtime, ctx, {"artifact": "Token", "args": []}, "Token")

    def test_exec_unfunded_signer(self, store, artifacts, ctx):
        """A zero-balance signer raises InsufficientFundsError with its address."""
        poor = "0x00000000000000000000000000000000000000aa"
        runtime = BuildRuntime(provider=InMemoryChain(accounts={poor: 0}), store=store, artifacts=artifacts)
        with pytest.raises(InsufficientFundsError) as exc_info:
            ContractStep().exec(runtime, ctx, {"artifact": "Token", "args": []}, "Token")
        assert poor in str(exc_info.value)

    def test_exec_unknown_from_address(self, runtime, ctx):
        """An explicit `from` that is not a known signer raises NoSignerError."""
        with pytest.raises(NoSignerError):
            ContractStep().exec(
                runtime, ctx, {"artifact": "Token", "args": [], "from": "0xdead"}, "Token"
            )


# ============================================================================
# invoke
# ============================================================================


class TestInvokeStep:
    """Tests for InvokeStep."""

    def _deploy(self, runtime, ctx):
        ctx.add_artifacts(
            "contract.Token",
            ContractStep().exec(runtime, ctx, {"artifact": "Token", "args": []}, "Token"),
        )
        return ctx.contracts["Token"].address

    def test_config_inject_normalizes_target(self, ctx):
        """A single target becomes a list; args and value get defaults."""
        assert InvokeStep().config_inject(ctx, {"target": "0x1", "func": "mint"}) == {
            "target": ["0x1"], "func": "mint", "args": [], "value": "0",
        }

    def test_exec_by_contract_name(self, runtime, ctx, chain):
        """Targets may be deployed contract names."""
        address = self._deploy(runtime, ctx)
        step = InvokeStep()
        config = step.config_inject(ctx, {"target": ["Token"], "func": "mint", "args": ["5"]})

        artifacts = step.exec(runtime, ctx, config, "mint")

        assert artifacts.txns["mint"].hash == chain.transactions[-1]["hash"]
        assert chain.transactions[-1]["to"] == address
        assert artifacts.txns["mint"].events == [{"event": "mint", "args": ["5"]}]

    def test_exec_multiple_targets_sequential(self, runtime, ctx, chain):
        """Each target gets its own transaction, in order."""
        address = self._deploy(runtime, ctx)
        step = InvokeStep()
        config = step.config_inject(ctx, {"target": ["Token", address], "func": "mint"})

        step.exec(runtime, ctx, config, "mint")

        calls = [t for t in chain.transactions if t["type"] == "call"]
        assert [c["to"] for c in calls] == [address, address]
        assert calls[0]["nonce"] < calls[1]["nonce"]

    def test_exec_unknown_target(self, runtime, ctx):
        """A target that is neither a contract nor an address is NotFoundError."""
        with pytest.raises(NotFoundError):
            InvokeStep().exec(runtime, ctx, {"target": ["Ghost"], "func": "mint"}, "mint")

    def test_exec_function_not_in_abi(self, runtime, ctx):
        """Calling a function missing from the ABI is NotFoundError."""
        self._deploy(runtime, ctx)
        with pytest.raises(NotFoundError):
            InvokeStep().exec(runtime, ctx, {"target": ["Token"], "func": "burn"}, "burn")

    def test_exec_revert_raises(self, runtime, ctx, chain):
        """A reverted transaction raises TransactionFailedError."""
        self._deploy(runtime, ctx)
        chain.revert_functions.add("explode")
        with pytest.raises(TransactionFailedError):
            InvokeStep().exec(runtime, ctx, {"target": ["Token"], "func": "explode"}, "boom")

    def test_state_tracks_target_address(self, runtime, ctx):
        """Redeploying a target changes the invoke fingerprint."""
        self._deploy(runtime, ctx)
        step = InvokeStep()
        config = step.config_inject(ctx, {"target": ["Token"], "func": "mint"})
        before = step.get_state(runtime, ctx, config)

        other = BuildContext(chain_id=13370, preset="main", package=dict(ctx.package))
        other.add_artifacts("contract.Token", ChainArtifacts(contracts={
            "Token": ContractArtifact(address="0x" + "9" * 40),
        }))
        assert step.get_state(runtime, other, config) != before


# ============================================================================
# run
# ============================================================================


class TestRunStep:
    """Tests for RunStep."""

    @pytest.fixture
    def script(self, tmp_path):
        path = tmp_path / "scripts" / "seed.py"
        path.parent.mkdir()
        path.write_text(textwrap.dedent('''
            def seed(runtime, ctx, label):
                return {
                    "contracts": {
                        "Seeded": {"address": "0x" + "5" * 40, "abi": []},
                    },
                    "txns": {"seed": {"hash": "0xfeed", "events": [{"label": label, "chain": ctx["chainId"]}]}},
                }

            def nothing(runtime, ctx):
                return None

            def wrong(runtime, ctx):
                return 42
        '''), encoding="utf-8")
        return path

    def test_exec_returns_artifacts(self, runtime, ctx, script):
        """The function's dict becomes ChainArtifacts."""
        step = RunStep()
        config = step.config_inject(ctx, {"exec": "scripts/seed.py", "func": "seed", "args": ["x"]})

        artifacts = step.exec(runtime, ctx, config, "seed")

        assert artifacts.contracts["Seeded"].address == "0x" + "5" * 40
        assert artifacts.txns["seed"].events == [{"label": "x", "chain": 13370}]

    def test_exec_none_is_empty(self, runtime, ctx, script):
        """Returning None produces empty artifacts."""
        assert RunStep().exec(runtime, ctx, {"exec": "scripts/seed.py", "func": "nothing"}, "n").is_empty()

    def test_exec_bad_return_type(self, runtime, ctx, script):
        """Non-dict results are rejected."""
        from cannon.runtime.errors import CannonError
        with pytest.raises(CannonError):
            RunStep().exec(runtime, ctx, {"exec": "scripts/seed.py", "func": "wrong"}, "w")

    def test_missing_function(self, runtime, ctx, script):
        """A function not defined in the script is NotFoundError."""
        with pytest.raises(NotFoundError):
            RunStep().exec(runtime, ctx, {"exec": "scripts/seed.py", "func": "absent"}, "a")

    def test_missing_script(self, runtime, ctx):
        """A script path that does not exist is NotFoundError."""
        with pytest.raises(NotFoundError):
            RunStep().get_state(runtime, ctx, {"exec": "nope.py", "func": "f", "modified": []})

    def test_state_tracks_file_content(self, runtime, ctx, script, tmp_path):
        """Editing the script or a `modified` file changes the fingerprint."""
        data = tmp_path / "data.csv"
        data.write_text("a,b\n", encoding="utf-8")
        step = RunStep()
        config = step.config_inject(ctx, {"exec": "scripts/seed.py", "func": "seed", "modified": ["data.csv"]})

        first = step.get_state(runtime, ctx, config)
        assert step.get_state(runtime, ctx, config) == first

        data.write_text("a,b,c\n", encoding="utf-8")
        second = step.get_state(runtime, ctx, config)
        assert second != first

        script.write_text(script.read_text(encoding="utf-8") + "\n# edit\n", encoding="utf-8")
        assert step.get_state(runtime, ctx, config) != second


# ============================================================================
# import
# ============================================================================


class TestImportStep:
    """Tests for ImportStep preconditions (full imports are in test_builder)."""

    def test_config_inject_defaults_preset(self, ctx):
        """preset defaults to main."""
        assert ImportStep().config_inject(ctx, {"source": "dep:1.0.0"}) == {
            "source": "dep:1.0.0", "preset": "main",
        }

    def test_missing_record_raises(self, runtime, ctx):
        """Importing a package that was never built is NotFoundError."""
        config = ImportStep().config_inject(ctx, {"source": "dep:1.0.0"})
        with pytest.raises(NotFoundError):
            ImportStep().exec(runtime, ctx, config, "dep")

    def test_import_cycle_raises(self, runtime, ctx):
        """Importing a package already on the import stack is a cycle."""
        nested = runtime.nested("dep:1.0.0")
        config = ImportStep().config_inject(ctx, {"source": "dep:1.0.0"})
        with pytest.raises(CycleError):
            ImportStep().exec(nested, ctx, config, "dep")
