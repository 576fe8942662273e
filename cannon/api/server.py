"""
FastAPI REST API for inspecting built packages.

Read-only: builds and publishing go through the CLI or
cannon.runtime.service.

Usage:
    # Run standalone
    python -m cannon.api.server --port 5002

    # Or via factory
    from cannon.api import create_app
    app = create_app(Path("~/.local/share/cannon/packages"))
    uvicorn.run(app, port=5002)

API Structure:
    /api/health                                     - Health check
    /api/packages                                   - Stored packages
    /api/packages/{name}/{version}/deployments      - Chain ids and presets
    /api/packages/{name}/{version}/outputs          - Merged outputs (404 if never built)
    /api/definitions/lint                           - Validate a raw definition
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from cannon.config.runtime_config import get_packages_dir
from cannon.runtime.storage import DeploymentStore

from .routes import definitions_router, packages_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str
    version: str
    packages_dir: str
    packages: int
    timestamp: str


def create_app(
    packages_dir: Optional[Path] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        packages_dir: Deployment store root (default: configured packages dir).
        enable_cors: Whether to enable CORS middleware.

    Returns:
        Configured FastAPI application.
    """
    store = DeploymentStore(packages_dir or get_packages_dir())

    app = FastAPI(
        title="Cannon Package API",
        description="Read-only inspection of built deployment packages.",
        version=API_VERSION,
    )
    app.state.store = store

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(packages_router, prefix="/api")
    app.include_router(definitions_router, prefix="/api")

    @app.get("/api/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            version=API_VERSION,
            packages_dir=str(store.packages_dir),
            packages=len(store.list_packages()),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    logger.info("Package API serving %s", store.packages_dir)
    return app


def main():
    """Run the API server."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Cannon Package API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5002, help="Port to bind to")
    parser.add_argument("--packages-dir", type=Path, help="Deployment store root")
    parser.add_argument("--no-cors", action="store_true", help="Disable CORS")
    args = parser.parse_args()

    app = create_app(args.packages_dir, enable_cors=not args.no_cors)
    print(f"Starting Cannon Package API at http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
