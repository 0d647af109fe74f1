"""ATT&CK technique lookup endpoint."""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request

from grc_records.core.auth import verify_api_key
from grc_records.schemas.mitre import MetadataResponse, TechniquesResponse
from grc_records.services.mitre_service import MitreAttackService

router = APIRouter(tags=["MITRE ATT&CK"])


def get_mitre_service(request: Request) -> MitreAttackService:
    """Return the service the app lifespan stored on ``app.state``."""
    return request.app.state.mitre_service


@router.get(
    "/mitre-attack/techniques",
    response_model=TechniquesResponse | MetadataResponse,
    dependencies=[Depends(verify_api_key)],
)
async def list_techniques(
    service: Annotated[MitreAttackService, Depends(get_mitre_service)],
    kind: Literal["techniques", "metadata"] = Query(
        "techniques",
        alias="type",
        description="'metadata' returns the tactic and platform lists instead of techniques.",
    ),
    search: str | None = Query(None, max_length=200, description="Match on id, name or description."),
    tactic: str | None = Query(None, max_length=100, description="Kill-chain phase or tactic name."),
    platform: str | None = Query(None, max_length=50),
) -> TechniquesResponse | MetadataResponse:
    """List ATT&CK techniques from the official STIX feed.

    Served from cache when fresh. See ``MitreAttackService`` for what is
    returned when the feed is unavailable.
    """
    if kind == "metadata":
        return service.metadata()
    return await service.list_techniques(search=search, tactic=tactic, platform=platform)
