"""Enrollment API routers."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import EnrollmentStatusEnum
from app.modules.enrollment.schemas import (
    AvailabilityRead,
    EnrollmentRead,
    EnrollmentResult,
    ReserveRequest,
    WithdrawRequest,
)
from app.modules.enrollment.service import EnrollmentService, get_enrollment_service
from app.modules.identity.schemas import Claims
from app.modules.identity.service import get_current_claims, get_optional_claims
from app.shared.exceptions import OutcomeRejectedException
from app.shared.pagination import Page, build_page, get_pagination_params

programs_router = APIRouter(prefix="/programs", tags=["enrollment"])
router = APIRouter(prefix="/enrollments", tags=["enrollment"])


def unwrap(result: EnrollmentResult) -> EnrollmentRead:
    """Serialize a successful result or raise its rejection."""
    if result.rejection is not None:
        extra = {"enrollment_id": str(result.enrollment.id)} if result.enrollment is not None else {}
        raise OutcomeRejectedException(result.rejection, extra)
    return EnrollmentRead.model_validate(result.enrollment)


@programs_router.get("/{program_id}/availability", response_model=AvailabilityRead)
async def get_availability(
    program_id: UUID,
    sub_profile_id: UUID | None = Query(default=None),
    service: EnrollmentService = Depends(get_enrollment_service),
    claims: Claims | None = Depends(get_optional_claims),
) -> AvailabilityRead:
    """Capacity and waitlist state, with the caller's own status when authenticated."""
    return await service.availability(program_id, claims, sub_profile_id)


@programs_router.post("/{program_id}/reserve", response_model=EnrollmentRead, status_code=status.HTTP_201_CREATED)
async def reserve(
    program_id: UUID,
    payload: ReserveRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
    claims: Claims = Depends(get_current_claims),
) -> EnrollmentRead:
    """Book a seat; joins the waitlist when the program is full."""
    return unwrap(await service.book(program_id, claims, payload.sub_profile_id))


@programs_router.post(
    "/{program_id}/waitlist/join",
    response_model=EnrollmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def join_waitlist(
    program_id: UUID,
    payload: ReserveRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
    claims: Claims = Depends(get_current_claims),
) -> EnrollmentRead:
    """Join the waitlist of a full program."""
    return unwrap(await service.join_waitlist(program_id, claims, payload.sub_profile_id))


@programs_router.post("/{program_id}/waitlist/{enrollment_id}/accept", response_model=EnrollmentRead)
async def accept_from_waitlist(
    program_id: UUID,
    enrollment_id: UUID,
    service: EnrollmentService = Depends(get_enrollment_service),
    claims: Claims = Depends(get_current_claims),
) -> EnrollmentRead:
    """Offer a seat to a specific waitlisted holder (studio admin)."""
    return unwrap(await service.accept_from_waitlist(program_id, enrollment_id, claims))


@router.post("/{enrollment_id}/withdraw", response_model=EnrollmentRead)
async def withdraw(
    enrollment_id: UUID,
    payload: WithdrawRequest,
    service: EnrollmentService = Depends(get_enrollment_service),
    claims: Claims = Depends(get_current_claims),
) -> EnrollmentRead:
    """Leave the waitlist or decline an offered seat."""
    return unwrap(await service.withdraw(enrollment_id, claims, payload.reason))


@router.get("/my", response_model=Page[EnrollmentRead])
async def list_my_enrollments(
    status_filter: list[EnrollmentStatusEnum] | None = Query(default=None, alias="status"),
    pagination=Depends(get_pagination_params),
    service: EnrollmentService = Depends(get_enrollment_service),
    claims: Claims = Depends(get_current_claims),
) -> Page[EnrollmentRead]:
    """List enrollments of the current user."""
    items, total = await service.list_my_enrollments(claims, status_filter, pagination.limit, pagination.offset)
    serialized = [EnrollmentRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
