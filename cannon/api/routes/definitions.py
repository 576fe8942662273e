"""
Definition endpoints for the inspection API.

Validation only: nothing here touches a chain or the store.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Body
from pydantic import BaseModel, Field

from cannon.spec.loader import lint_document

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/definitions", tags=["definitions"])


class LintResponse(BaseModel):
    """Result of linting a raw definition."""

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    order: List[str] = Field(default_factory=list)


@router.post("/lint", response_model=LintResponse)
async def lint(definition: Dict[str, Any] = Body(...)):
    """Validate a definition and return its step order or its errors."""
    result = lint_document(definition)
    logger.debug("Linted definition %s: %d errors", definition.get("name"), len(result["errors"]))
    return LintResponse(valid=not result["errors"], **result)
