# routers/projects.py — Projects inside the organization
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from access import require_organization_member, resolve_project
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import Project, Board, WikiPage, ADMIN_ROLES, AuditLog, AuditEventType
from schemas import ProjectOut, project_out

router = APIRouter(prefix="/api/v1/projects", tags=["Projects"])
logger = logging.getLogger("plainboard.projects")

COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"
DEFAULT_COLOR = "#3b82f6"


# ============================================================
# SCHEMAS
# ============================================================

class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    color: str = Field(default=DEFAULT_COLOR, pattern=COLOR_PATTERN)
    organization_id: str


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)


# ============================================================
# HELPERS
# ============================================================

def _project_query():
    return select(Project).options(
        selectinload(Project.boards).selectinload(Board.created_by),
        selectinload(Project.wiki_pages).selectinload(WikiPage.created_by),
    ).execution_options(populate_existing=True)


async def _load_project(db: AsyncSession, project_id: str) -> Project:
    result = await db.execute(_project_query().where(Project.id == project_id))
    return result.scalar_one()


# ============================================================
# PROJECT ENDPOINTS
# ============================================================

@router.get("", response_model=List[ProjectOut])
async def list_projects(
    organization_id: str = Query(...),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """All projects of the organization, newest first"""
    await require_organization_member(db, user.id, organization_id)
    stmt = (
        _project_query()
        .where(Project.organization_id == organization_id)
        .order_by(Project.created_at.desc())
    )
    result = await db.execute(stmt)
    return [project_out(p) for p in result.scalars().all()]


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Project with its boards and published wiki pages"""
    await resolve_project(db, project_id, user.id)
    return project_out(await _load_project(db, project_id), published_only=True)


@router.post("", response_model=ProjectOut)
async def create_project(
    data: ProjectCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await require_organization_member(db, user.id, data.organization_id)

    project = Project(
        organization_id=data.organization_id,
        name=data.name,
        description=data.description,
        color=data.color,
    )
    db.add(project)
    await db.commit()

    logger.info(f"Project {project.id} created in {data.organization_id} by {user.id}")
    return project_out(await _load_project(db, project.id))


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_project(db, project_id, user.id)
    project = access.resource

    if data.name is not None:
        project.name = data.name
    if data.description is not None:
        project.description = data.description
    if data.color is not None:
        project.color = data.color

    await db.commit()
    return project_out(await _load_project(db, project_id))


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a project with all its boards and wiki pages (OWNER or ADMIN)"""
    access = await resolve_project(
        db, project_id, user.id, roles=ADMIN_ROLES,
        denied="You don't have permission to delete this project",
    )

    await db.delete(access.resource)
    db.add(AuditLog(
        event_type=AuditEventType.PROJECT_DELETED,
        user_id=user.id,
        organization_id=access.organization_id,
        resource_type="project",
        resource_id=project_id,
    ))
    await db.commit()

    logger.info(f"Project {project_id} deleted by {user.id}")
    return {"success": True}
