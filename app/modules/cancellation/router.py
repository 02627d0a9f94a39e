"""Cancellation API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.modules.cancellation.schemas import CancellationEvaluationRead, ConfirmRequest, EvaluateRequest
from app.modules.cancellation.service import CancellationService, get_cancellation_service
from app.modules.enrollment.router import unwrap
from app.modules.enrollment.schemas import EnrollmentRead
from app.modules.identity.schemas import Claims
from app.modules.identity.service import get_current_claims, get_optional_claims
from app.shared.exceptions import OutcomeRejectedException

router = APIRouter(prefix="/cancellation", tags=["cancellation"])


@router.post("/evaluate", response_model=CancellationEvaluationRead)
async def evaluate_cancellation(
    payload: EvaluateRequest,
    service: CancellationService = Depends(get_cancellation_service),
    claims: Claims | None = Depends(get_optional_claims),
) -> CancellationEvaluationRead:
    """Cutoff, window label and policy texts for an enrollment or program."""
    outcome = await service.evaluate(payload, claims)
    if outcome.result.rejection is not None:
        raise OutcomeRejectedException(outcome.result.rejection)
    return outcome.evaluation


@router.post("/confirm", response_model=EnrollmentRead)
async def confirm_cancellation(
    payload: ConfirmRequest,
    service: CancellationService = Depends(get_cancellation_service),
    claims: Claims = Depends(get_current_claims),
) -> EnrollmentRead:
    """Cancel an enrollment while its cancellation window is open."""
    outcome = await service.confirm(payload, claims)
    if outcome.result.rejection is not None and outcome.evaluation is not None:
        raise OutcomeRejectedException(outcome.result.rejection, outcome.evaluation.model_dump(mode="json"))
    return unwrap(outcome.result)
