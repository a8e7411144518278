"""
Rankings API — /rankings
──────────────────────────
Endpoints:
  GET    /rankings/me                         — Current user's ranked list
  GET    /rankings/me/{item_id}               — One entry ("already ranked at #N")
  DELETE /rankings/me/{item_id}               — Remove an entry (204)
  POST   /rankings/me/reset                   — Clear the list, return old order
  POST   /rankings/me/repair                  — Renumber the list to 1..N
  POST   /rankings/sessions                   — Start placing an item (201)
  GET    /rankings/sessions/{session_id}      — Session state
  POST   /rankings/sessions/{session_id}/compare — Answer the current probe
  POST   /rankings/sessions/{session_id}/undo    — Take back the last answer
  POST   /rankings/sessions/{session_id}/commit  — Write at the resolved index (201)
  DELETE /rankings/sessions/{session_id}      — Abandon a session (204)
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from playedit.deps.services import get_owner_id, get_ranking_service
from playedit.schemas.rankings import (
    BeginRankingRequest,
    CompareRequest,
    ProbeResponse,
    RankedEntryResponse,
    RepairResponse,
    SessionStateResponse,
)
from playedit.services.comparison import ComparisonSession
from playedit.services.entries import EntryPayload, RankedEntry
from playedit.services.errors import (
    ConflictError,
    InvalidPositionError,
    NotFoundError,
    RankingError,
    SessionNotFoundError,
    SessionStateError,
    StaleComparisonError,
    UpstreamUnavailableError,
)
from playedit.services.ranking_service import RankingService

router = APIRouter()


def _error(code: str, message: str) -> dict:
    """Standard error envelope."""
    return {"error": {"code": code, "message": message}}


def _http_error(exc: RankingError) -> HTTPException:
    """Map a ranking engine error onto an HTTP response."""
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status.HTTP_404_NOT_FOUND, _error("SESSION_NOT_FOUND", str(exc)))
    if isinstance(exc, NotFoundError):
        return HTTPException(status.HTTP_404_NOT_FOUND, _error("NOT_FOUND", str(exc)))
    if isinstance(exc, ConflictError):
        return HTTPException(status.HTTP_409_CONFLICT, _error("ALREADY_RANKED", str(exc)))
    if isinstance(exc, StaleComparisonError):
        return HTTPException(status.HTTP_409_CONFLICT, _error("STALE_COMPARISON", str(exc)))
    if isinstance(exc, SessionStateError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, _error("SESSION_STATE", str(exc)))
    if isinstance(exc, InvalidPositionError):
        return HTTPException(status.HTTP_400_BAD_REQUEST, _error("INVALID_POSITION", str(exc)))
    if isinstance(exc, UpstreamUnavailableError):
        message = str(exc)
        if exc.pending_entry is not None:
            message += " (partially applied; retry the commit to finish placing the item)"
        elif exc.partially_applied:
            message += " (partially applied; the list is repaired on the next read)"
        return HTTPException(
            status.HTTP_503_SERVICE_UNAVAILABLE, _error("UPSTREAM_UNAVAILABLE", message)
        )
    return HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, _error("INTERNAL", str(exc)))


def _entry(entry: RankedEntry) -> dict:
    return {
        "id": entry.id,
        "item_id": entry.item_id,
        "position": entry.position,
        "platforms": list(entry.payload.platforms),
        "notes": entry.payload.notes,
        "logged_at": entry.logged_at,
    }


def _session(session: ComparisonSession) -> dict:
    probe = session.current_probe
    return {
        "session_id": session.id,
        "item_id": session.item_id,
        "rerank": session.rerank,
        "list_size": session.list_size,
        "comparisons_made": session.comparisons_made,
        "estimated_total": session.estimated_total,
        "remaining_upper_bound": session.remaining_upper_bound,
        "next_probe": (
            ProbeResponse(item_id=probe.item_id, position=probe.position)
            if probe is not None
            else None
        ),
        "final_index": session.final_index,
    }


# ── List routes ───────────────────────────────────────────────────────────────


@router.get("/me", response_model=list[RankedEntryResponse])
def get_my_rankings(
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> list[dict]:
    """Return the authenticated user's ranked list, #1 first."""
    try:
        return [_entry(e) for e in service.list_rankings(owner_id)]
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.get("/me/{item_id}", response_model=RankedEntryResponse)
def get_my_entry(
    item_id: str,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    try:
        return _entry(service.get_entry(owner_id, item_id))
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.delete("/me/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_my_entry(
    item_id: str,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> None:
    """Remove an entry; everything below it moves up one place."""
    try:
        service.remove_entry(owner_id, item_id)
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.post("/me/reset", response_model=list[RankedEntryResponse])
def reset_my_rankings(
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> list[dict]:
    """Clear the list. The response holds the old order so it can be re-ranked."""
    try:
        return [_entry(e) for e in service.reset_rankings(owner_id)]
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.post("/me/repair", response_model=RepairResponse)
def repair_my_rankings(
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    try:
        return {"rewritten": service.repair(owner_id)}
    except RankingError as exc:
        raise _http_error(exc) from exc


# ── Comparison sessions ───────────────────────────────────────────────────────


@router.post(
    "/sessions",
    response_model=SessionStateResponse,
    status_code=status.HTTP_201_CREATED,
)
def begin_session(
    payload: BeginRankingRequest,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    """
    Start placing an item. An empty list resolves immediately
    (final_index = 1); otherwise next_probe is the first item to compare.
    """
    entry_payload = None
    if not payload.rerank or payload.platforms or payload.notes is not None:
        entry_payload = EntryPayload(platforms=tuple(payload.platforms), notes=payload.notes)
    try:
        session = service.begin_ranking(
            owner_id, payload.item_id, entry_payload, rerank=payload.rerank
        )
    except RankingError as exc:
        raise _http_error(exc) from exc
    return _session(session)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
def get_session(
    session_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    try:
        return _session(service.get_session(owner_id, session_id))
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/compare", response_model=SessionStateResponse)
def compare(
    session_id: UUID,
    payload: CompareRequest,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    """Answer the current probe: is the new item better or worse than it?"""
    try:
        service.compare(owner_id, session_id, payload.probe_item_id, payload.outcome)
        return _session(service.get_session(owner_id, session_id))
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.post("/sessions/{session_id}/undo", response_model=SessionStateResponse)
def undo(
    session_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    try:
        service.undo(owner_id, session_id)
        return _session(service.get_session(owner_id, session_id))
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/sessions/{session_id}/commit",
    response_model=RankedEntryResponse,
    status_code=status.HTTP_201_CREATED,
)
def commit(
    session_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> dict:
    """Write the item at the resolved index, shifting the rest of the list."""
    try:
        return _entry(service.commit(owner_id, session_id))
    except RankingError as exc:
        raise _http_error(exc) from exc


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_session(
    session_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    service: RankingService = Depends(get_ranking_service),
) -> None:
    try:
        service.cancel(owner_id, session_id)
    except RankingError as exc:
        raise _http_error(exc) from exc
