from fastapi import APIRouter, Depends, Query

from dictionary_review.api.responses import unwrap_or_raise
from dictionary_review.core.security import get_identity
from dictionary_review.schemas.corrections import ApplyOutcome
from dictionary_review.schemas.events import AuditEventOut
from dictionary_review.schemas.words import StatusView, VoteOutcome, VoteRequest
from dictionary_review.services.engine import get_engine

router = APIRouter()


@router.post("/{correction_id}/votes", response_model=VoteOutcome)
async def vote_on_correction(
    correction_id: str,
    payload: VoteRequest,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> VoteOutcome:
    return unwrap_or_raise(await engine.vote("correction", correction_id, identity, payload.decision, payload.comment))


@router.get("/{correction_id}/status", response_model=StatusView)
async def correction_status(
    correction_id: str,
    _identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> StatusView:
    return unwrap_or_raise(await engine.load_status("correction", correction_id))


@router.get("/{correction_id}/events", response_model=list[AuditEventOut])
async def correction_events(
    correction_id: str,
    _identity=Depends(get_identity),
    engine=Depends(get_engine),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[AuditEventOut]:
    return unwrap_or_raise(await engine.list_events("correction", correction_id, limit=limit, offset=offset))


@router.post("/{correction_id}/apply", response_model=ApplyOutcome)
async def apply_correction(
    correction_id: str,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> ApplyOutcome:
    return unwrap_or_raise(await engine.apply_correction(correction_id, identity))
