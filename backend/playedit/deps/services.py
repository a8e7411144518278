"""
Service dependencies.

The ranking service holds process-wide state (owner locks, open
comparison sessions), so one instance is shared by every request.
Tests swap it with app.dependency_overrides[get_ranking_service].

Routes take the owner from get_owner_id rather than straight from the
token: with RECORD_STORE=memory there is no account service filling the
users table, so a valid token's owner is registered on first use.
"""
from functools import lru_cache
from uuid import UUID

from fastapi import Depends, HTTPException, status

from playedit.core.config import settings
from playedit.deps.auth import get_current_owner_id
from playedit.services.errors import UpstreamUnavailableError
from playedit.services.locks import OwnerLocks
from playedit.services.ranking_service import RankingService
from playedit.store.base import RecordStore
from playedit.store.memory import InMemoryRecordStore


@lru_cache
def get_record_store() -> RecordStore:
    if settings.RECORD_STORE == "memory":
        return InMemoryRecordStore()

    # Imported lazily so the memory store never needs a DB driver
    from playedit.db.session import SessionLocal
    from playedit.store.sql import SqlRecordStore

    return SqlRecordStore(SessionLocal)


@lru_cache
def get_ranking_service() -> RankingService:
    return RankingService(
        get_record_store(),
        locks=OwnerLocks(enabled=settings.SERIALIZE_OWNER_WRITES),
        max_comparisons=settings.MAX_COMPARISONS,
        session_ttl_seconds=settings.SESSION_TTL_SECONDS,
        repair_on_read=settings.REPAIR_ON_READ,
    )


def get_owner_id(
    owner_id: UUID = Depends(get_current_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> UUID:
    if settings.RECORD_STORE == "memory":
        try:
            service.register_owner(owner_id)
        except UpstreamUnavailableError as exc:
            raise HTTPException(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                {"error": {"code": "UPSTREAM_UNAVAILABLE", "message": str(exc)}},
            ) from exc
    return owner_id
