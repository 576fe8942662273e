"""Runtime configuration for builds, storage and the registry.

Environment variables take precedence over runtime.yaml, which takes
precedence over built-in defaults.

Usage:
    from cannon.config.runtime_config import get_packages_dir, get_receipt_timeout

    store = DeploymentStore(get_packages_dir())
    timeout = get_receipt_timeout()  # seconds, clamped to sane bounds

Environment variables:
    CANNON_PACKAGES_DIR      - deployment store root
    CANNON_CONTENT_DIR       - local content-addressed blob store root
    CANNON_DEFAULT_PRESET    - preset used when none is given
    CANNON_RECEIPT_TIMEOUT   - seconds to wait for a transaction receipt
    CANNON_REGISTRY_ADDRESS  - registry contract address (front ends)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "runtime.yaml"
_cached_config: Optional[Dict[str, Any]] = None

RECEIPT_TIMEOUT_MIN = 1.0
RECEIPT_TIMEOUT_MAX = 3600.0


def _default_config() -> Dict[str, Any]:
    """Return default configuration if runtime.yaml doesn't exist."""
    return {
        "version": "1.0",
        "storage": {
            "packages_dir": "~/.local/share/cannon/packages",
            "content_dir": "~/.local/share/cannon/ipfs",
        },
        "build": {
            "default_preset": "main",
            "receipt_timeout_seconds": 120,
        },
        "registry": {
            "address": None,
        },
    }


def _load_config() -> Dict[str, Any]:
    """Load runtime.yaml configuration, with caching."""
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH, encoding="utf-8") as f:
            _cached_config = yaml.safe_load(f) or _default_config()
    else:
        _cached_config = _default_config()

    return _cached_config


def reset_config() -> None:
    """Reset cached config (for testing)."""
    global _cached_config
    _cached_config = None


def _section(name: str) -> Dict[str, Any]:
    return _load_config().get(name) or _default_config()[name]


def _clamp_timeout(value: float) -> float:
    if value < RECEIPT_TIMEOUT_MIN:
        logger.warning(
            "Receipt timeout %.1fs is below minimum %.1fs. Clamping.",
            value, RECEIPT_TIMEOUT_MIN,
        )
        return RECEIPT_TIMEOUT_MIN
    if value > RECEIPT_TIMEOUT_MAX:
        logger.warning(
            "Receipt timeout %.1fs exceeds maximum %.1fs. Clamping.",
            value, RECEIPT_TIMEOUT_MAX,
        )
        return RECEIPT_TIMEOUT_MAX
    return value


def get_packages_dir() -> Path:
    """Root directory of the deployment store."""
    env_value = os.environ.get("CANNON_PACKAGES_DIR")
    if env_value:
        return Path(env_value).expanduser()
    return Path(_section("storage")["packages_dir"]).expanduser()


def get_content_dir() -> Path:
    """Root directory of the local content store."""
    env_value = os.environ.get("CANNON_CONTENT_DIR")
    if env_value:
        return Path(env_value).expanduser()
    return Path(_section("storage")["content_dir"]).expanduser()


def get_default_preset() -> str:
    """Preset used when a build or lookup does not name one."""
    return os.environ.get("CANNON_DEFAULT_PRESET") or _section("build").get("default_preset", "main")


def get_receipt_timeout() -> float:
    """Seconds to wait for a transaction receipt before a retryable failure."""
    env_value = os.environ.get("CANNON_RECEIPT_TIMEOUT")
    if env_value:
        try:
            return _clamp_timeout(float(env_value))
        except ValueError:
            logger.warning("Invalid CANNON_RECEIPT_TIMEOUT=%r, using config value", env_value)
    return _clamp_timeout(float(_section("build").get("receipt_timeout_seconds", 120)))


def get_registry_address() -> Optional[str]:
    """Registry contract address, if configured."""
    return os.environ.get("CANNON_REGISTRY_ADDRESS") or _section("registry").get("address")
