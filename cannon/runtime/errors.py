"""
errors.py - Exception hierarchy for definition parsing, builds and publishing.

All cannon exceptions inherit from CannonError so callers can catch one base
class. Each error carries a `retryable` flag: only network waits (receipt
timeouts) are retryable; everything else is a definition or precondition
problem that needs a human.

Taxonomy:
    SchemaError             - bad definition / step config (pre-execution)
    CycleError              - cyclic dependency graph (pre-execution)
    UnresolvedTemplateError - template references an unavailable value
    NoSignerError           - no signer available for a transaction
    InsufficientFundsError  - signer cannot pay for a transaction
    NotFoundError           - missing deployment record / package / blob
    TransactionFailedError  - transaction mined but reverted
    TransactionTimeoutError - receipt wait timed out (retryable)
    StepExecutionError      - wraps any failure of one build step
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .types import ChainArtifacts


class CannonError(Exception):
    """Base exception for all cannon errors."""

    # Set by the builder when the error is raised inside a step
    step_name: Optional[str] = None
    partial_outputs: Optional["ChainArtifacts"] = None

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class SchemaError(CannonError):
    """Raised when a definition or step configuration has the wrong shape."""

    def __init__(self, errors: List[str], location: str = "definition"):
        self.errors = list(errors)
        self.location = location
        super().__init__(f"{location} validation failed: " + "; ".join(self.errors))


class CycleError(CannonError):
    """Raised when the step dependency relation contains a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        super().__init__("dependency cycle detected: " + " -> ".join(self.cycle))


class UnresolvedTemplateError(CannonError):
    """Raised when a template placeholder cannot be resolved against the context."""

    def __init__(self, path: str, template: Optional[str] = None):
        self.path = path
        self.template = template
        msg = f"unresolved template reference '{path}'"
        if template is not None:
            msg += f" in {template!r}"
        super().__init__(msg)


class NoSignerError(CannonError):
    """Raised when a transaction needs a signer and none is available."""


class InsufficientFundsError(CannonError):
    """Raised when the signer has no balance to pay for transactions."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"Signer at address {address} is not funded with ETH. "
            "Please ensure you have ETH in your wallet in order to publish."
        )


class NotFoundError(CannonError):
    """Raised when a requested record, package or blob does not exist."""

    def __init__(self, what: str, key: str, path: Optional[object] = None):
        self.what = what
        self.key = key
        self.path = path
        msg = f"{what} '{key}' not found"
        if path:
            msg += f" at {path}"
        super().__init__(msg)


class TransactionFailedError(CannonError):
    """Raised when a transaction was mined with a failure status."""

    def __init__(self, tx_hash: str, reason: str = "reverted"):
        self.tx_hash = tx_hash
        self.reason = reason
        super().__init__(f"transaction {tx_hash} failed: {reason}")


class TransactionTimeoutError(CannonError):
    """Raised when waiting for a receipt exceeds the configured timeout.

    The transaction may still be mined later, so this is retryable: the
    caller should wait again rather than resubmit.
    """

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"timed out after {timeout}s waiting for receipt of {tx_hash}",
            retryable=True,
        )


class StepExecutionError(CannonError):
    """Raised when a build step fails; carries the artifacts completed so far."""

    def __init__(
        self,
        step_name: str,
        cause: BaseException,
        partial_outputs: Optional["ChainArtifacts"] = None,
    ):
        self.step_name = step_name
        self.cause = cause
        self.partial_outputs = partial_outputs
        super().__init__(
            f"step '{step_name}' failed: {cause}",
            retryable=getattr(cause, "retryable", False),
        )
