"""
Ranking request/response schemas.
"""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from playedit.services.comparison import Preference


class BeginRankingRequest(BaseModel):
    """Payload for POST /rankings/sessions."""

    item_id: str = Field(min_length=1, max_length=64)
    platforms: list[str] = Field(default_factory=list)
    notes: str | None = None
    # Re-rank an item that is already in the list
    rerank: bool = False

    @field_validator("notes")
    @classmethod
    def cap_notes_length(cls, v: str | None) -> str | None:
        if v is not None and len(v) > 2000:
            raise ValueError("Notes cannot exceed 2000 characters")
        return v

    @field_validator("platforms")
    @classmethod
    def dedupe_platforms(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for p in (x.strip() for x in v):
            if p and p not in seen:
                seen.append(p)
        return seen


class CompareRequest(BaseModel):
    """Payload for POST /rankings/sessions/{session_id}/compare."""

    probe_item_id: str
    outcome: Preference


class RankedEntryResponse(BaseModel):
    id: UUID
    item_id: str
    position: int
    platforms: list[str]
    notes: str | None
    logged_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ProbeResponse(BaseModel):
    item_id: str
    position: int


class SessionStateResponse(BaseModel):
    """Where a comparison session stands."""

    session_id: UUID
    item_id: str
    rerank: bool
    list_size: int
    comparisons_made: int
    estimated_total: int
    remaining_upper_bound: int
    next_probe: ProbeResponse | None
    final_index: int | None


class RepairResponse(BaseModel):
    rewritten: int
