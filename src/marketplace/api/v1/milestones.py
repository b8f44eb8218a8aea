"""Milestone escrow endpoints.

Mutating endpoints return the milestone's new status, escrow status, version
and the actions the caller may take next.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from src.marketplace.api.dependencies import (
    CurrentActor,
    IfMatchVersion,
    MilestoneServiceDep,
    resolve_expected_version,
)
from src.marketplace.models import MilestoneAction
from src.marketplace.schemas import (
    DisputeCreate,
    DisputeRead,
    MilestoneActionRequest,
    MilestoneCreate,
    MilestoneRead,
    MilestoneUpdate,
    PaginatedResponse,
    TransitionLogRead,
    VersionedRequest,
)
from src.marketplace.services import Actor, MilestoneService
from src.marketplace.services.milestone_service import TRANSITION_ACTIONS

router = APIRouter(tags=["milestones"])

_CONFLICT = {409: {"description": "Invalid transition, not editable or stale version"}}

# Path segment per action where it differs from the hyphenated action name
_PATHS = {MilestoneAction.APPROVE_AND_RELEASE: "approve-release"}


async def _read(service: MilestoneService, actor: Actor, milestone_id: UUID) -> MilestoneRead:
    milestone, allowed = await service.get(actor, milestone_id)
    return MilestoneRead.from_model(milestone, allowed)


@router.get(
    "/projects/{project_id}/milestones",
    response_model=PaginatedResponse[MilestoneRead],
    summary="List project milestones",
)
async def list_milestones(
    project_id: UUID,
    service: MilestoneServiceDep,
    actor: CurrentActor,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Max items to return")] = 50,
) -> PaginatedResponse[MilestoneRead]:
    milestones, next_cursor, has_more = await service.list_by_project(
        actor, project_id, cursor=cursor, limit=limit
    )
    return PaginatedResponse(
        items=[MilestoneRead.from_model(m) for m in milestones],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.post(
    "/milestones",
    response_model=MilestoneRead,
    status_code=status.HTTP_201_CREATED,
    summary="Propose milestone",
    responses={403: {"description": "Only the project owner can propose milestones"}},
)
async def create_milestone(
    request: MilestoneCreate,
    service: MilestoneServiceDep,
    actor: CurrentActor,
) -> MilestoneRead:
    milestone = await service.create(actor, request)
    return await _read(service, actor, milestone.id)


@router.get(
    "/milestones/{milestone_id}",
    response_model=MilestoneRead,
    summary="Get milestone",
    description="Includes allowedActions for the caller in the milestone's current state.",
    responses={404: {"description": "Milestone not found"}},
)
async def get_milestone(
    milestone_id: UUID,
    service: MilestoneServiceDep,
    actor: CurrentActor,
) -> MilestoneRead:
    return await _read(service, actor, milestone_id)


@router.put(
    "/milestones/{milestone_id}",
    response_model=MilestoneRead,
    summary="Edit milestone",
    description="Only allowed before work starts; fails with NOT_EDITABLE afterwards.",
    responses=_CONFLICT,
)
async def update_milestone(
    milestone_id: UUID,
    request: MilestoneUpdate,
    service: MilestoneServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
) -> MilestoneRead:
    request.expected_version = resolve_expected_version(request.expected_version, if_match)
    await service.update(actor, milestone_id, request)
    return await _read(service, actor, milestone_id)


@router.delete(
    "/milestones/{milestone_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete milestone",
    responses=_CONFLICT,
)
async def delete_milestone(
    milestone_id: UUID,
    service: MilestoneServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
    request: VersionedRequest | None = None,
) -> None:
    body_version = request.expected_version if request else None
    await service.delete(actor, milestone_id, resolve_expected_version(body_version, if_match))


@router.get(
    "/milestones/{milestone_id}/transitions",
    response_model=PaginatedResponse[TransitionLogRead],
    summary="Milestone history",
)
async def milestone_history(
    milestone_id: UUID,
    service: MilestoneServiceDep,
    actor: CurrentActor,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Max items to return")] = 50,
) -> PaginatedResponse[TransitionLogRead]:
    entries, next_cursor, has_more = await service.history(
        actor, milestone_id, cursor=cursor, limit=limit
    )
    return PaginatedResponse(
        items=[TransitionLogRead.model_validate(e) for e in entries],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.get(
    "/milestones/{milestone_id}/disputes",
    response_model=list[DisputeRead],
    summary="List disputes",
)
async def list_disputes(
    milestone_id: UUID,
    service: MilestoneServiceDep,
    actor: CurrentActor,
) -> list[DisputeRead]:
    disputes = await service.disputes(actor, milestone_id)
    return [DisputeRead.model_validate(d) for d in disputes]


@router.post(
    "/milestones/{milestone_id}/dispute",
    response_model=DisputeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Raise dispute",
    description="Allowed while work or review is underway. The milestone status is unchanged.",
    responses=_CONFLICT,
)
async def dispute_milestone(
    milestone_id: UUID,
    request: DisputeCreate,
    service: MilestoneServiceDep,
    actor: CurrentActor,
    if_match: IfMatchVersion,
) -> DisputeRead:
    dispute = await service.dispute(
        actor,
        milestone_id,
        request.reason,
        expected_version=resolve_expected_version(request.expected_version, if_match),
    )
    return DisputeRead.model_validate(dispute)


def _lifecycle_route(action: MilestoneAction) -> None:
    """Register POST /milestones/{id}/<action> for a lifecycle transition."""

    async def endpoint(
        milestone_id: UUID,
        service: MilestoneServiceDep,
        actor: CurrentActor,
        if_match: IfMatchVersion,
        request: MilestoneActionRequest | None = None,
    ) -> MilestoneRead:
        body_version = request.expected_version if request else None
        await service.transition(
            actor,
            milestone_id,
            action,
            expected_version=resolve_expected_version(body_version, if_match),
            message=request.message if request else None,
        )
        return await _read(service, actor, milestone_id)

    segment = _PATHS.get(action, action.value.replace("_", "-"))
    router.add_api_route(
        f"/milestones/{{milestone_id}}/{segment}",
        endpoint,
        methods=["POST"],
        response_model=MilestoneRead,
        summary=action.value.replace("_", " ").capitalize(),
        responses=_CONFLICT,
        name=f"{action.value}_milestone",
    )


for _action in sorted(TRANSITION_ACTIONS, key=lambda a: a.value):
    _lifecycle_route(_action)
