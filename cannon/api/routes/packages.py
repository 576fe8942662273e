"""
Package endpoints for the inspection API.

Provides read-only REST endpoints for:
- Listing stored packages
- Listing a package's (chain id, preset) deployments
- Reading the merged outputs of one deployment
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from cannon.runtime.storage import DeploymentStore, outputs_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/packages", tags=["packages"])


# =============================================================================
# Pydantic Models
# =============================================================================


class PackageListResponse(BaseModel):
    """Response for list packages endpoint."""

    packages: List[str]


class DeploymentSummary(BaseModel):
    """One (chain id, preset) deployment of a package."""

    chain_id: int
    preset: str


class DeploymentListResponse(BaseModel):
    """Response for list deployments endpoint."""

    package: str
    deployments: List[DeploymentSummary] = Field(default_factory=list)


class OutputsResponse(BaseModel):
    """Merged outputs of one deployment."""

    package: str
    chain_id: int
    preset: str
    contracts: Dict[str, Any] = Field(default_factory=dict)
    txns: Dict[str, Any] = Field(default_factory=dict)
    imports: Dict[str, Any] = Field(default_factory=dict)


def _get_store(request: Request) -> DeploymentStore:
    return request.app.state.store


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=PackageListResponse)
async def list_packages(request: Request):
    """List every stored package as name:version."""
    return PackageListResponse(packages=_get_store(request).list_packages())


@router.get("/{name}/{version}/deployments", response_model=DeploymentListResponse)
async def list_deployments(name: str, version: str, request: Request):
    """List the chain ids and presets a package was built for."""
    package = f"{name}:{version}"
    keys = sorted(_get_store(request).list(package))
    return DeploymentListResponse(
        package=package,
        deployments=[DeploymentSummary(chain_id=c, preset=p) for c, p in keys],
    )


@router.get("/{name}/{version}/outputs", response_model=OutputsResponse)
async def get_outputs(
    name: str,
    version: str,
    request: Request,
    chain_id: int = Query(..., description="Chain id of the deployment"),
    preset: str = Query("main", description="Preset of the deployment"),
):
    """Merged outputs of a stored build.

    Raises:
        HTTPException: 404 if the package was never built for chain/preset.
    """
    package = f"{name}:{version}"
    outputs = _get_store(request).get_outputs(package, chain_id, preset)
    if outputs is None:
        raise HTTPException(
            status_code=404,
            detail=f"No deployment of {package} on chain {chain_id} (preset {preset})",
        )
    return OutputsResponse(package=package, chain_id=chain_id, preset=preset,
                           **outputs_summary(outputs))
