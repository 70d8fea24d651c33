from fastapi import APIRouter, Depends, Query, status

from dictionary_review.api.responses import unwrap_or_raise
from dictionary_review.core.security import get_identity
from dictionary_review.schemas.corrections import CorrectionProposal
from dictionary_review.schemas.events import AuditEventOut
from dictionary_review.schemas.reports import ReportCreateRequest
from dictionary_review.schemas.words import EntityCreatedOut, StatusView, VoteOutcome, VoteRequest, WordSubmission
from dictionary_review.services.engine import get_engine

router = APIRouter()


@router.post("", response_model=EntityCreatedOut, status_code=status.HTTP_201_CREATED)
async def submit_word(
    payload: WordSubmission,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> EntityCreatedOut:
    word_id = unwrap_or_raise(await engine.submit_word(payload, identity))
    return EntityCreatedOut(id=word_id)


@router.post("/{word_id}/votes", response_model=VoteOutcome)
async def vote_on_word(
    word_id: str,
    payload: VoteRequest,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> VoteOutcome:
    return unwrap_or_raise(await engine.vote("word", word_id, identity, payload.decision, payload.comment))


@router.get("/{word_id}/status", response_model=StatusView)
async def word_status(
    word_id: str,
    _identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> StatusView:
    return unwrap_or_raise(await engine.load_status("word", word_id))


@router.get("/{word_id}/events", response_model=list[AuditEventOut])
async def word_events(
    word_id: str,
    _identity=Depends(get_identity),
    engine=Depends(get_engine),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[AuditEventOut]:
    return unwrap_or_raise(await engine.list_events("word", word_id, limit=limit, offset=offset))


@router.post("/{word_id}/corrections", response_model=EntityCreatedOut, status_code=status.HTTP_201_CREATED)
async def propose_correction(
    word_id: str,
    payload: CorrectionProposal,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> EntityCreatedOut:
    correction_id = unwrap_or_raise(
        await engine.propose_correction(
            word_id,
            identity,
            payload.correction_type,
            payload.current_value,
            payload.proposed_change,
            payload.explanation,
            payload.meaning_index,
        )
    )
    return EntityCreatedOut(id=correction_id)


@router.post("/{word_id}/reports", response_model=EntityCreatedOut, status_code=status.HTTP_201_CREATED)
async def report_word(
    word_id: str,
    payload: ReportCreateRequest,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> EntityCreatedOut:
    report_id = unwrap_or_raise(await engine.report_word(word_id, identity, payload.reason, payload.details))
    return EntityCreatedOut(id=report_id)
