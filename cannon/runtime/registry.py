"""
registry.py - On-chain registry of published package URLs.

The registry maps (package name, version, variant) to the URL of a bundled
deploy manifest. Names, versions and variants travel on chain as bytes32
values. The pseudo-package `@ipfs` is resolved locally: `@ipfs:<cid>`
always means `ipfs://<cid>`.

Usage:
    from cannon.runtime.registry import CannonRegistry, InMemoryRegistryContract

    registry = CannonRegistry(InMemoryRegistryContract(chain), chain)
    registry.publish(["proj:1.0.0", "proj:latest"], "ipfs://Qm...", "13370-main")
    registry.get_url("proj", "latest", "13370-main")   # "ipfs://Qm..."
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from .chain import ChainProvider, InMemoryChain, Signer
from .errors import InsufficientFundsError, NoSignerError

logger = logging.getLogger(__name__)

IPFS_PSEUDO_PACKAGE = "@ipfs"
DEFAULT_REGISTRY_ADDRESS = "0xa8ef5c7d7c6ac8e4d3e2e9ff49f2e41ea7b07deb"

REGISTRY_ABI = [
    {
        "type": "function",
        "name": "publish",
        "inputs": [
            {"name": "_packageName", "type": "bytes32"},
            {"name": "_packageVersionNames", "type": "bytes32[]"},
            {"name": "_packageVariant", "type": "bytes32"},
            {"name": "_packageDeployUrl", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getPackageUrl",
        "inputs": [
            {"name": "_packageName", "type": "bytes32"},
            {"name": "_packageVersionName", "type": "bytes32"},
            {"name": "_packageVariant", "type": "bytes32"},
        ],
        "outputs": [{"name": "", "type": "string"}],
    },
]


# =============================================================================
# bytes32 encoding
# =============================================================================


def format_bytes32(text: str) -> str:
    """Encode a short string as a 0x-prefixed, zero-padded bytes32 value.

    Raises:
        ValueError: If the UTF-8 encoding is longer than 31 bytes (the
            last byte is reserved for the terminator).
    """
    data = text.encode("utf-8")
    if len(data) > 31:
        raise ValueError(f"bytes32 string must be less than 32 bytes: {text!r}")
    return "0x" + data.ljust(32, b"\x00").hex()


def parse_bytes32(value: str) -> str:
    """Decode a bytes32 value produced by format_bytes32()."""
    raw = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    if len(raw) != 32:
        raise ValueError(f"invalid bytes32 value: {value!r}")
    return raw.rstrip(b"\x00").decode("utf-8")


# =============================================================================
# Contract bindings
# =============================================================================


class RegistryContract(ABC):
    """Binding to a deployed registry contract."""

    address: str = ""

    @abstractmethod
    def publish(
        self,
        signer: Signer,
        name: str,
        versions: Sequence[str],
        variant: str,
        url: str,
    ) -> str:
        """Submit a publish call (bytes32 arguments); returns the tx hash."""
        ...

    @abstractmethod
    def get_package_url(self, name: str, version: str, variant: str) -> str:
        """Read the URL for bytes32 (name, version, variant); "" if unset."""
        ...


class InMemoryRegistryContract(RegistryContract):
    """Registry stub whose publish calls are real transactions on an InMemoryChain.

    Attributes:
        calls: Every publish call as (name, versions, variant, url), decoded.
    """

    def __init__(self, chain: InMemoryChain, address: str = DEFAULT_REGISTRY_ADDRESS):
        self.chain = chain
        self.address = address.lower()
        chain.set_code(self.address)
        self._urls: Dict[Tuple[str, str, str], str] = {}
        self._lock = threading.Lock()
        self.calls: List[Tuple[str, List[str], str, str]] = []
        self.reads = 0

    def publish(self, signer, name, versions, variant, url) -> str:
        tx_hash = self.chain.send_transaction(
            signer, self.address, REGISTRY_ABI, "publish",
            [name, list(versions), variant, url],
        )
        with self._lock:
            for version in versions:
                self._urls[(name, version, variant)] = url
            self.calls.append((
                parse_bytes32(name),
                [parse_bytes32(v) for v in versions],
                parse_bytes32(variant),
                url,
            ))
        return tx_hash

    def get_package_url(self, name, version, variant) -> str:
        with self._lock:
            self.reads += 1
            return self._urls.get((name, version, variant), "")


# =============================================================================
# Registry client
# =============================================================================


def _split_ref(ref: str) -> Tuple[str, str]:
    name, sep, version = ref.partition(":")
    if not sep or not name or not version:
        raise ValueError(f"package reference must be name:version, got {ref!r}")
    return name, version


def group_package_refs(package_refs: Sequence[str]) -> List[Tuple[str, List[str]]]:
    """Group "name:version" refs by name, in order of first appearance."""
    groups: Dict[str, List[str]] = {}
    for ref in package_refs:
        name, version = _split_ref(ref)
        groups.setdefault(name, []).append(version)
    return list(groups.items())


class CannonRegistry:
    """Publishes and resolves package URLs through a RegistryContract."""

    def __init__(
        self,
        contract: RegistryContract,
        provider: ChainProvider,
        signer: Optional[Signer] = None,
        receipt_timeout: Optional[float] = None,
    ):
        self.contract = contract
        self.provider = provider
        self.signer = signer
        self.receipt_timeout = receipt_timeout
        logger.debug("Created registry client for contract %s", contract.address)

    def _funded_signer(self) -> Signer:
        signer = self.signer or self.provider.get_default_signer()
        if signer is None:
            raise NoSignerError("Missing signer needed for publishing")
        if self.provider.get_balance(signer.address) <= 0:
            raise InsufficientFundsError(signer.address)
        return signer

    def publish(self, package_refs: Sequence[str], url: str, variant: str) -> List[str]:
        """Register url for every ref; one transaction per package name.

        Transactions are sent one at a time, each receipt awaited before the
        next is submitted, so a single signer's nonces stay ordered.

        Returns:
            Transaction hashes, one per distinct package name, in order.
        """
        groups = group_package_refs(package_refs)
        signer = self._funded_signer()

        tx_hashes: List[str] = []
        for name, versions in groups:
            logger.info("Publishing %s versions %s (variant %s) -> %s",
                        name, ", ".join(versions), variant, url)
            tx_hash = self.contract.publish(
                signer,
                format_bytes32(name),
                [format_bytes32(v) for v in versions],
                format_bytes32(variant),
                url,
            )
            receipt = self.provider.wait_for_transaction(tx_hash, timeout=self.receipt_timeout)
            tx_hashes.append(receipt.transaction_hash)
        return tx_hashes

    def get_url(self, name: str, version: str, variant: str) -> Optional[str]:
        """URL registered for (name, version, variant), or None."""
        if name == IPFS_PSEUDO_PACKAGE:
            return f"ipfs://{version}"

        url = self.contract.get_package_url(
            format_bytes32(name),
            format_bytes32(version),
            format_bytes32(variant),
        )
        return url or None

    resolve = get_url
