"""Application screening and assignment endpoints.

Every mutating endpoint returns the application's new status, version and the
actions the caller may take next. ``expectedVersion`` in the body or an
``If-Match`` header enables the optimistic concurrency check.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from src.marketplace.api.dependencies import (
    ApplicationServiceDep,
    CurrentActor,
    IfMatchVersion,
    resolve_expected_version,
)
from src.marketplace.models import ApplicationAction
from src.marketplace.schemas import (
    ApplicationRead,
    ApplicationSubmit,
    ManualScoreRequest,
    OfferRequest,
    PaginatedResponse,
    RankedApplicationsRead,
    ReassignRequest,
    RecommendRequest,
    TransitionLogRead,
    VersionedRequest,
)
from src.marketplace.services import Actor, ApplicationService

router = APIRouter(tags=["applications"])

_CONFLICT = {409: {"description": "Invalid transition, invariant violation or stale version"}}


async def _read(
    service: ApplicationService, actor: Actor, application_id: UUID
) -> ApplicationRead:
    application, allowed = await service.get(actor, application_id)
    return ApplicationRead.from_model(application, allowed)


# --- Project-scoped ---


@router.post(
    "/projects/{project_id}/applications",
    response_model=ApplicationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Submit application",
    description=(
        "Submit an application, or reactivate a rejected or declined one "
        "for the same students."
    ),
    responses=_CONFLICT,
)
async def submit_application(
    project_id: UUID,
    request: ApplicationSubmit,
    service: ApplicationServiceDep,
    actor: CurrentActor,
) -> ApplicationRead:
    application = await service.submit(actor, project_id, request)
    return await _read(service, actor, application.id)


@router.get(
    "/projects/{project_id}/applications/ranked",
    response_model=RankedApplicationsRead,
    summary="Ranked candidates",
    description=(
        "Applications by final score, ties by submission time, "
        "plus the default candidate."
    ),
)
async def ranked_applications(
    project_id: UUID,
    service: ApplicationServiceDep,
    actor: CurrentActor,
) -> RankedApplicationsRead:
    ranked, default = await service.ranked(actor, project_id)
    return RankedApplicationsRead(
        items=[ApplicationRead.from_model(a) for a in ranked],
        default_candidate_id=default.id if default else None,
    )


@router.post(
    "/projects/{project_id}/applications/{application_id}/reassign",
    response_model=list[ApplicationRead],
    summary="Reassign project",
    description=(
        "Atomically move the assignment from the currently assigned application to "
        "newApplicationId. Returns [displaced, newly assigned], or just [newly assigned] "
        "when the project no longer had an assignee."
    ),
    responses=_CONFLICT,
)
async def reassign_application(
    project_id: UUID,
    application_id: UUID,
    request: ReassignRequest,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
) -> list[ApplicationRead]:
    displaced, assigned = await service.reassign(
        actor,
        project_id,
        application_id,
        request.new_application_id,
        reject_previous=request.reject_previous,
        expected_version=resolve_expected_version(request.expected_version, if_match),
    )
    changed = [assigned] if displaced is None else [displaced, assigned]
    return [await _read(service, actor, application.id) for application in changed]


# --- Application-scoped ---


@router.get(
    "/applications/{application_id}",
    response_model=ApplicationRead,
    summary="Get application",
    responses={404: {"description": "Application not found"}},
)
async def get_application(
    application_id: UUID,
    service: ApplicationServiceDep,
    actor: CurrentActor,
) -> ApplicationRead:
    return await _read(service, actor, application_id)


@router.get(
    "/applications/{application_id}/transitions",
    response_model=PaginatedResponse[TransitionLogRead],
    summary="Application history",
)
async def application_history(
    application_id: UUID,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Max items to return")] = 50,
) -> PaginatedResponse[TransitionLogRead]:
    entries, next_cursor, has_more = await service.history(
        actor, application_id, cursor=cursor, limit=limit
    )
    return PaginatedResponse(
        items=[TransitionLogRead.model_validate(e) for e in entries],
        next_cursor=next_cursor,
        has_more=has_more,
    )


def _simple_transition(action: ApplicationAction, summary: str) -> None:
    """Register POST /applications/{id}/<action> for a guard-only transition."""

    async def endpoint(
        application_id: UUID,
        service: ApplicationServiceDep,
        actor: CurrentActor,
        if_match: IfMatchVersion,
        request: VersionedRequest | None = None,
    ) -> ApplicationRead:
        body_version = request.expected_version if request else None
        await service.transition(
            actor,
            application_id,
            action,
            expected_version=resolve_expected_version(body_version, if_match),
        )
        return await _read(service, actor, application_id)

    router.add_api_route(
        f"/applications/{{application_id}}/{action.value.replace('_', '-')}",
        endpoint,
        methods=["POST"],
        response_model=ApplicationRead,
        summary=summary,
        responses=_CONFLICT,
        name=f"{action.value}_application",
    )


_simple_transition(ApplicationAction.SHORTLIST, "Shortlist application")
_simple_transition(ApplicationAction.WAITLIST, "Waitlist application")
_simple_transition(ApplicationAction.RESET, "Return application to review")
_simple_transition(ApplicationAction.DECLINE_OFFER, "Decline offer")
_simple_transition(ApplicationAction.UNDO_REJECT, "Undo rejection")
_simple_transition(ApplicationAction.WITHDRAW, "Withdraw application")
_simple_transition(ApplicationAction.TERMINATE, "Leave assigned project")


@router.post(
    "/applications/{application_id}/offer",
    response_model=ApplicationRead,
    summary="Offer project",
    description="Make a time-limited offer; the student accepts with accept-offer.",
    responses=_CONFLICT,
)
async def offer_application(
    application_id: UUID,
    request: OfferRequest,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
) -> ApplicationRead:
    await service.offer(
        actor,
        application_id,
        request.offer_expires_at,
        expected_version=resolve_expected_version(request.expected_version, if_match),
    )
    return await _read(service, actor, application_id)


@router.post(
    "/applications/{application_id}/accept",
    response_model=ApplicationRead,
    summary="Assign application",
    responses=_CONFLICT,
)
async def accept_application(
    application_id: UUID,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
    request: VersionedRequest | None = None,
) -> ApplicationRead:
    body_version = request.expected_version if request else None
    await service.accept(
        actor, application_id, resolve_expected_version(body_version, if_match)
    )
    return await _read(service, actor, application_id)


@router.post(
    "/applications/{application_id}/accept-offer",
    response_model=ApplicationRead,
    summary="Accept offer",
    responses=_CONFLICT,
)
async def accept_offer(
    application_id: UUID,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
    request: VersionedRequest | None = None,
) -> ApplicationRead:
    body_version = request.expected_version if request else None
    await service.accept_offer(
        actor, application_id, resolve_expected_version(body_version, if_match)
    )
    return await _read(service, actor, application_id)


@router.post(
    "/applications/{application_id}/reject",
    response_model=ApplicationRead,
    summary="Reject application",
    responses=_CONFLICT,
)
async def reject_application(
    application_id: UUID,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
    request: VersionedRequest | None = None,
) -> ApplicationRead:
    body_version = request.expected_version if request else None
    await service.reject(
        actor, application_id, resolve_expected_version(body_version, if_match)
    )
    return await _read(service, actor, application_id)


@router.post(
    "/applications/{application_id}/recommend",
    response_model=ApplicationRead,
    summary="Recommend application",
    description="Notify one or more partners about an application. No status change.",
)
async def recommend_application(
    application_id: UUID,
    request: RecommendRequest,
    service: ApplicationServiceDep,
    actor: CurrentActor,
) -> ApplicationRead:
    await service.recommend(actor, application_id, request.partner_ids)
    return await _read(service, actor, application_id)


@router.post(
    "/applications/{application_id}/score",
    response_model=ApplicationRead,
    summary="Set manual score",
    description="Partners and supervisors each set their manual score once (0-100).",
    responses=_CONFLICT,
)
async def score_application(
    application_id: UUID,
    request: ManualScoreRequest,
    service: ApplicationServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
) -> ApplicationRead:
    await service.score(
        actor,
        application_id,
        request.score,
        expected_version=resolve_expected_version(request.expected_version, if_match),
    )
    return await _read(service, actor, application_id)
