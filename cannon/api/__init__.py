"""
Cannon Package API - read-only FastAPI inspection of the deployment store.

Endpoints:
    GET    /api/health                                  - Health check
    GET    /api/packages                                - List packages
    GET    /api/packages/{name}/{version}/deployments   - List deployments
    GET    /api/packages/{name}/{version}/outputs       - Outputs for chain_id/preset
    POST   /api/definitions/lint                        - Validate a definition
"""

from .routes import definitions_router, packages_router
from .server import create_app

__all__ = [
    "create_app",
    "definitions_router",
    "packages_router",
]
