"""Project endpoints - the minimal project surface the engine works against."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from src.marketplace.api.dependencies import CurrentActor, ProjectServiceDep
from src.marketplace.schemas import PaginatedResponse, ProjectCreate, ProjectRead

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get(
    "",
    response_model=PaginatedResponse[ProjectRead],
    summary="List projects",
    description="List projects with cursor-based pagination, newest first.",
)
async def list_projects(
    service: ProjectServiceDep,
    _actor: CurrentActor,
    cursor: Annotated[str | None, Query(description="Cursor for pagination")] = None,
    limit: Annotated[int, Query(ge=1, le=100, description="Max items to return")] = 50,
) -> PaginatedResponse[ProjectRead]:
    projects, next_cursor, has_more = await service.list_all(cursor=cursor, limit=limit)
    return PaginatedResponse(
        items=[ProjectRead.model_validate(p) for p in projects],
        next_cursor=next_cursor,
        has_more=has_more,
    )


@router.get(
    "/{project_id}",
    response_model=ProjectRead,
    summary="Get project",
    responses={404: {"description": "Project not found"}},
)
async def get_project(
    project_id: UUID,
    service: ProjectServiceDep,
    _actor: CurrentActor,
) -> ProjectRead:
    project = await service.get(project_id)
    return ProjectRead.model_validate(project)


@router.post(
    "",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create project",
    description="Partners create projects they own; super-admins may pass partnerId.",
    responses={
        201: {"description": "Project created"},
        403: {"description": "Role cannot create projects"},
    },
)
async def create_project(
    request: ProjectCreate,
    service: ProjectServiceDep,
    actor: CurrentActor,
) -> ProjectRead:
    project = await service.create(actor, request)
    return ProjectRead.model_validate(project)
