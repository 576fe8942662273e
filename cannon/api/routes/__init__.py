"""
Routes package for the inspection API.

This package contains the FastAPI routers for:
- packages: Stored packages, deployments and outputs
- definitions: Definition validation
"""

from .definitions import router as definitions_router
from .packages import router as packages_router

__all__ = [
    "definitions_router",
    "packages_router",
]
