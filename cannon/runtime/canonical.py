"""
canonical.py - Canonical JSON and hashing used for step fingerprints.

Fingerprints must not depend on key ordering: two configs that differ only
in the order their keys were declared describe the same side effects and
must hash identically.

Usage:
    from cannon.runtime.canonical import canonical_json, state_hash

    state_hash({"b": 1, "a": [1, 2]}) == state_hash({"a": [1, 2], "b": 1})
    # True
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Union

CHUNK = 1024 * 1024


def canonical_json(obj: Any, *, indent: int | None = None) -> str:
    """Serialize object to canonical JSON.

    Keys are sorted recursively, separators are tight when indent is None,
    and NaN/Infinity are rejected.

    Examples:
        >>> canonical_json({"b": 1, "a": 2})
        '{"a":2,"b":1}'
    """
    if indent is not None:
        separators = (",", ": ")
    else:
        separators = (",", ":")

    return json.dumps(
        normalize_for_hash(obj),
        sort_keys=True,
        separators=separators,
        ensure_ascii=False,
        indent=indent,
        allow_nan=False,
    )


def canonical_json_bytes(obj: Any) -> bytes:
    """Canonical JSON encoded as UTF-8."""
    return canonical_json(obj).encode("utf-8")


def state_hash(obj: Any) -> str:
    """Full SHA-256 hex digest of the canonical JSON form of obj."""
    return hashlib.sha256(canonical_json_bytes(obj)).hexdigest()


def bytes_hash(data: Union[bytes, str]) -> str:
    """SHA-256 hex digest of raw bytes (str is UTF-8 encoded first)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def file_hash(path: Path) -> str:
    """Stream a file and return its SHA-256 hex digest."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            block = f.read(CHUNK)
            if not block:
                break
            h.update(block)
    return h.hexdigest()


def normalize_for_hash(obj: Any) -> Any:
    """Normalize object for consistent hashing.

    - Tuples become lists
    - Sets become sorted lists
    - Dict keys are coerced to str (JSON would do this anyway)

    Note: This is a deep copy operation.
    """
    if isinstance(obj, dict):
        return {str(k): normalize_for_hash(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [normalize_for_hash(item) for item in obj]
    elif isinstance(obj, (set, frozenset)):
        return sorted(normalize_for_hash(item) for item in obj)
    else:
        return obj
