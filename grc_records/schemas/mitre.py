"""Pydantic schemas for the MITRE ATT&CK technique endpoints."""

from typing import Literal

from pydantic import BaseModel, Field


class MitreTechnique(BaseModel):
    """One ATT&CK technique, already validated and sanitised."""

    id: str = Field(..., description="ATT&CK technique id, e.g. 'T1078' or 'T1055.012'.")
    name: str = Field(..., description="Technique name.")
    description: str = Field(..., description="Technique description (may be truncated).")
    tactic: str = Field(
        "",
        description="Kill-chain phase of the first listed tactic (e.g. 'initial-access').",
    )
    tactic_name: str = Field("", alias="tacticName")
    platforms: list[str] = Field(default_factory=list)
    url: str = Field(..., description="Link to the technique on attack.mitre.org.")

    model_config = {"populate_by_name": True}


class TechniquesResponse(BaseModel):
    """Technique list with provenance and cache state."""

    success: bool = True
    data: list[MitreTechnique]
    count: int
    source: str
    last_updated: str = Field(..., alias="lastUpdated")
    cache_status: Literal["fresh", "cached", "stale", "fallback"] = Field(
        ...,
        alias="cacheStatus",
    )
    note: str | None = None
    fallback_reason: str | None = Field(None, alias="fallbackReason")

    model_config = {"populate_by_name": True}


class Tactic(BaseModel):
    id: str
    name: str


class Metadata(BaseModel):
    tactics: list[Tactic]
    platforms: list[str]


class MetadataResponse(BaseModel):
    success: bool = True
    data: Metadata
