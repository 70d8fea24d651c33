from fastapi import APIRouter, Depends

from dictionary_review.api.responses import unwrap_or_raise
from dictionary_review.core.security import get_identity
from dictionary_review.schemas.admin import AdminDecisionRequest, DecisionOutcome, ReportResolveRequest
from dictionary_review.schemas.reports import ReportOut
from dictionary_review.services.engine import get_engine

router = APIRouter()


@router.post("/words/{word_id}/decision", response_model=DecisionOutcome)
async def decide_word(
    word_id: str,
    payload: AdminDecisionRequest,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> DecisionOutcome:
    return unwrap_or_raise(
        await engine.admin_decide(
            "word",
            word_id,
            payload.decision,
            identity,
            reason=payload.reason,
            override=payload.override,
        )
    )


@router.post("/corrections/{correction_id}/decision", response_model=DecisionOutcome)
async def decide_correction(
    correction_id: str,
    payload: AdminDecisionRequest,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> DecisionOutcome:
    return unwrap_or_raise(
        await engine.admin_decide(
            "correction",
            correction_id,
            payload.decision,
            identity,
            reason=payload.reason,
            override=payload.override,
        )
    )


@router.post("/reports/{report_id}/resolve", response_model=ReportOut)
async def resolve_report(
    report_id: str,
    payload: ReportResolveRequest,
    identity=Depends(get_identity),
    engine=Depends(get_engine),
) -> ReportOut:
    return unwrap_or_raise(
        await engine.resolve_report(report_id, payload.resolution, identity, action_taken=payload.action_taken)
    )
