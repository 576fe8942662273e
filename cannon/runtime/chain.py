"""
chain.py - Chain/transaction collaborator interface and an in-memory stub.

The core never manages keys or talks JSON-RPC itself. Host tooling supplies
a ChainProvider; steps and the registry client only go through it.

InMemoryChain is the zero-cost stub used for dry runs and tests: it mines
every transaction immediately, derives contract addresses deterministically
from (sender, nonce) and records every submitted transaction.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from .errors import (
    NoSignerError,
    NotFoundError,
    TransactionFailedError,
    TransactionTimeoutError,
)

logger = logging.getLogger(__name__)

# First default account of local development nodes
DEFAULT_ACCOUNT = "0xf39fd6e51aad88f6f4ce6ab8827279cfffb92266"
DEFAULT_BALANCE = 10**22
DEFAULT_CHAIN_ID = 13370


@dataclass(frozen=True)
class Signer:
    """An account the provider can sign for."""
    address: str


@dataclass(frozen=True)
class TransactionReceipt:
    """Result of a mined transaction."""
    transaction_hash: str
    status: int = 1
    block_number: int = 0
    contract_address: Optional[str] = None
    logs: List[Dict[str, Any]] = field(default_factory=list, hash=False)


class ChainProvider(ABC):
    """Abstract chain access used by step executors and the registry.

    Implementations must make send/deploy return as soon as the transaction
    is submitted; wait_for_transaction is the only blocking call.
    """

    @property
    @abstractmethod
    def chain_id(self) -> int:
        ...

    @abstractmethod
    def get_signer(self, address: str) -> Signer:
        """Return a signer for address, or raise NoSignerError."""
        ...

    @abstractmethod
    def get_default_signer(self) -> Optional[Signer]:
        ...

    @abstractmethod
    def get_balance(self, address: str) -> int:
        ...

    @abstractmethod
    def deploy_contract(
        self,
        signer: Signer,
        abi: Sequence[Dict[str, Any]],
        bytecode: str,
        args: Sequence[Any],
    ) -> str:
        """Submit a contract creation and return its transaction hash."""
        ...

    @abstractmethod
    def send_transaction(
        self,
        signer: Signer,
        to: str,
        abi: Sequence[Dict[str, Any]],
        func: str,
        args: Sequence[Any],
        value: int = 0,
    ) -> str:
        """Submit a function call and return its transaction hash."""
        ...

    @abstractmethod
    def wait_for_transaction(
        self, tx_hash: str, timeout: Optional[float] = None
    ) -> TransactionReceipt:
        """Block until mined.

        Raises:
            TransactionFailedError: If the transaction reverted.
            TransactionTimeoutError: If no receipt arrived within timeout.
        """
        ...

    def resolve_signer(self, address: Optional[str] = None) -> Signer:
        """Signer for an explicit address, else the default signer."""
        if address:
            return self.get_signer(address)
        signer = self.get_default_signer()
        if signer is None:
            raise NoSignerError(
                "no default signer is configured; set `from` on the step "
                "or supply a signer for the deployment"
            )
        return signer


class InMemoryChain(ChainProvider):
    """Deterministic stub chain.

    Attributes:
        transactions: Every submitted transaction, in submission order.
        revert_functions: Function names whose calls are mined as reverted.
        auto_mine: When False, receipts stay pending and waits time out.
    """

    def __init__(
        self,
        chain_id: int = DEFAULT_CHAIN_ID,
        accounts: Optional[Dict[str, int]] = None,
        auto_mine: bool = True,
    ):
        self._chain_id = chain_id
        if accounts is None:
            accounts = {DEFAULT_ACCOUNT: DEFAULT_BALANCE}
        self._balances: Dict[str, int] = {a.lower(): b for a, b in accounts.items()}
        self._accounts: List[str] = [a.lower() for a in accounts]
        self._nonces: Dict[str, int] = {}
        self._code: Dict[str, str] = {}
        self._receipts: Dict[str, TransactionReceipt] = {}
        self._block = 0
        self._lock = threading.Lock()
        self.transactions: List[Dict[str, Any]] = []
        self.revert_functions: Set[str] = set()
        self.auto_mine = auto_mine

    @property
    def chain_id(self) -> int:
        return self._chain_id

    def get_signer(self, address: str) -> Signer:
        key = address.lower()
        if key not in self._balances:
            raise NoSignerError(
                f"the current step requests usage of the signer with address {address}, "
                "but this signer is not found. Please either supply the private key, "
                "or change the cannon configuration to use a different signer."
            )
        return Signer(key)

    def get_default_signer(self) -> Optional[Signer]:
        return Signer(self._accounts[0]) if self._accounts else None

    def get_balance(self, address: str) -> int:
        return self._balances.get(address.lower(), 0)

    def set_code(self, address: str, code: str = "0x00") -> None:
        """Mark an address as holding contract code."""
        self._code[address.lower()] = code

    def has_code(self, address: str) -> bool:
        return address.lower() in self._code

    def _next_tx(self, signer: Signer, record: Dict[str, Any]) -> tuple[str, int]:
        nonce = self._nonces.get(signer.address, 0)
        self._nonces[signer.address] = nonce + 1
        digest = hashlib.sha256(
            f"{self._chain_id}:{signer.address}:{nonce}".encode("utf-8")
        ).hexdigest()
        tx_hash = "0x" + digest
        self.transactions.append({"hash": tx_hash, "from": signer.address, "nonce": nonce, **record})
        return tx_hash, nonce

    def _mine(self, receipt: TransactionReceipt) -> None:
        self._block += 1
        self._receipts[receipt.transaction_hash] = TransactionReceipt(
            transaction_hash=receipt.transaction_hash,
            status=receipt.status,
            block_number=self._block,
            contract_address=receipt.contract_address,
            logs=receipt.logs,
        )

    def deploy_contract(self, signer, abi, bytecode, args) -> str:
        with self._lock:
            tx_hash, nonce = self._next_tx(
                signer, {"type": "deploy", "bytecode": bytecode, "args": list(args)}
            )
            address = "0x" + hashlib.sha256(
                f"{signer.address}:{nonce}".encode("utf-8")
            ).hexdigest()[:40]
            self._code[address] = bytecode
            self._mine(TransactionReceipt(tx_hash, status=1, contract_address=address))
            logger.debug("Deployed contract at %s (tx %s)", address, tx_hash)
            return tx_hash

    def send_transaction(self, signer, to, abi, func, args, value=0) -> str:
        with self._lock:
            tx_hash, _ = self._next_tx(
                signer,
                {"type": "call", "to": to.lower(), "func": func, "args": list(args), "value": value},
            )
            ok = to.lower() in self._code and func not in self.revert_functions
            logs = [{"event": func, "args": list(args)}] if ok else []
            self._mine(TransactionReceipt(tx_hash, status=1 if ok else 0, logs=logs))
            return tx_hash

    def wait_for_transaction(self, tx_hash, timeout=None) -> TransactionReceipt:
        if not self.auto_mine:
            if timeout:
                time.sleep(min(timeout, 0.01))
            raise TransactionTimeoutError(tx_hash, timeout or 0)
        receipt = self._receipts.get(tx_hash)
        if receipt is None:
            raise NotFoundError("transaction", tx_hash)
        if receipt.status == 0:
            raise TransactionFailedError(tx_hash)
        return receipt
