"""
Ranked entry domain types and their mapping to user_games records.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


@dataclass(frozen=True)
class EntryPayload:
    """Owner-supplied metadata. The ranking engine never inspects it."""

    platforms: tuple[str, ...] = ()
    notes: str | None = None


@dataclass(frozen=True)
class RankedEntry:
    id: UUID
    owner_id: UUID
    item_id: str
    position: int
    payload: EntryPayload = field(default_factory=EntryPayload)
    logged_at: datetime | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "RankedEntry":
        return cls(
            id=record["id"],
            owner_id=record["user_id"],
            item_id=record["game_id"],
            position=record["rank_position"],
            payload=EntryPayload(
                platforms=tuple(record.get("platform_played") or ()),
                notes=record.get("notes"),
            ),
            logged_at=record.get("logged_at"),
        )


def to_record(
    owner_id: UUID, item_id: str, position: int, payload: EntryPayload
) -> dict[str, Any]:
    """Column values for a new user_games row."""
    return {
        "user_id": owner_id,
        "game_id": item_id,
        "rank_position": position,
        "platform_played": list(payload.platforms),
        "notes": payload.notes,
    }
