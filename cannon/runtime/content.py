"""
content.py - Content-addressed blob store for package bundles.

Packages are published as blobs addressed by the hash of their bytes and
referenced by `ipfs://<cid>` URLs. Pinning and the real IPFS network are
out of scope; LocalContentStore keeps blobs in a fan-out directory:

    <root>/
      ab/
        abcdef...      # blob whose sha256 is abcdef...
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from .canonical import bytes_hash
from .errors import CannonError, NotFoundError

logger = logging.getLogger(__name__)

URL_SCHEME = "ipfs://"


def cid_from_url(url: str) -> str:
    """Extract the content id from an ipfs:// URL."""
    if not url.startswith(URL_SCHEME) or len(url) == len(URL_SCHEME):
        raise ValueError(f"not a content URL: {url!r}")
    return url[len(URL_SCHEME):]


def url_for_cid(cid: str) -> str:
    return URL_SCHEME + cid


class ContentStore(ABC):
    """Push and fetch immutable blobs by content address."""

    @abstractmethod
    def push(self, data: bytes) -> str:
        """Store data and return its ipfs:// URL."""
        ...

    @abstractmethod
    def fetch(self, url: str) -> bytes:
        """Return the blob for url, or raise NotFoundError."""
        ...


class LocalContentStore(ContentStore):
    """Content store on the local filesystem."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, cid: str) -> Path:
        return self.root / cid[:2] / cid

    def push(self, data: bytes) -> str:
        cid = bytes_hash(data)
        path = self._path(cid)
        if path.exists():
            return url_for_cid(cid)

        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=cid[:8] + ".", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        logger.info("Stored blob %s (%d bytes)", cid, len(data))
        return url_for_cid(cid)

    def fetch(self, url: str) -> bytes:
        cid = cid_from_url(url)
        path = self._path(cid)
        if not path.exists():
            raise NotFoundError("blob", cid, path)
        data = path.read_bytes()
        if bytes_hash(data) != cid:
            raise CannonError(f"blob {cid} is corrupt: content hash mismatch")
        return data
