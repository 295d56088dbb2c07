"""Project endpoints: list, create, and set type or color."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status  # type: ignore[import-untyped]

from timeboard.api.auth import verify_token
from timeboard.api.dependencies import get_storage
from timeboard.api.models import CreateProjectRequest, ProjectResponse, UpdateProjectRequest
from timeboard.core.models import project_color_for
from timeboard.core.storage import StorageManager

router = APIRouter()


@router.get("/", response_model=list[ProjectResponse])
def list_projects(
    storage: StorageManager = Depends(get_storage),
    _: dict[str, Any] = Depends(verify_token),
) -> list[ProjectResponse]:
    """List all projects.

    Example:
        >>> GET /api/v1/projects
        [{"key": "manual:ops", "name": "Ops", "color": "#A9E8E8", "project_type": "work", ...}]
    """
    return [ProjectResponse.from_project(p) for p in storage.load_projects()]


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    request: CreateProjectRequest,
    storage: StorageManager = Depends(get_storage),
    _: dict[str, Any] = Depends(verify_token),
) -> ProjectResponse:
    """Create a project. 409 if one with the same name exists."""
    if storage.get_project_by_name(request.name):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Project {request.name} already exists",
        )

    project = storage.ensure_project(
        request.name, project_type=request.project_type, color=request.color
    )
    return ProjectResponse.from_project(project)


@router.patch("/{project_key}", response_model=ProjectResponse)
def update_project(
    project_key: str,
    request: UpdateProjectRequest,
    storage: StorageManager = Depends(get_storage),
    _: dict[str, Any] = Depends(verify_token),
) -> ProjectResponse:
    """Change a project's type (work / non_work) or display color."""
    project = storage.get_project(project_key)
    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project {project_key} not found",
        )

    if request.project_type is not None:
        project.project_type = request.project_type
    if request.color is not None:
        project.color = project_color_for(project.name, request.color)

    storage.save_project(project)
    return ProjectResponse.from_project(project)
