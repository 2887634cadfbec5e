# routers/wiki.py — Per-project wiki pages with unique slugs
import logging
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from access import resolve_project, resolve_wiki_page, require_creator_or_admin
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import WikiPage, Project, OrganizationMember, AuditLog, AuditEventType
from schemas import WikiPageOut, wiki_page_out
from slugs import SLUG_PATTERN, slug_taken, unique_wiki_slug

router = APIRouter(prefix="/api/v1/wiki", tags=["Wiki"])
logger = logging.getLogger("plainboard.wiki")

SLUG_CONFLICT = "A wiki page with this slug already exists in this project"


# ============================================================
# SCHEMAS
# ============================================================

class WikiPageCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)
    project_id: str
    published: bool = False


class WikiPageCreateSimple(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = ""
    project_id: str
    published: bool = True


class WikiPageUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None
    slug: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    published: Optional[bool] = None


# ============================================================
# HELPERS
# ============================================================

def _page_query():
    return select(WikiPage).options(
        selectinload(WikiPage.project),
        selectinload(WikiPage.created_by),
        selectinload(WikiPage.last_edited_by),
    ).execution_options(populate_existing=True)


async def _load_page(db: AsyncSession, page_id: str) -> WikiPage:
    stmt = _page_query().where(WikiPage.id == page_id)
    return (await db.execute(stmt)).scalar_one()


async def _commit_slug(db: AsyncSession, project_id: str, slug: str) -> None:
    """Commit a page write; a concurrent writer taking the same slug first gets 409"""
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Slug {slug} taken concurrently in project {project_id}")
        raise HTTPException(status_code=409, detail=SLUG_CONFLICT)


# ============================================================
# READ ENDPOINTS
# ============================================================

@router.get("", response_model=List[WikiPageOut])
async def list_all_pages(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Published pages across every project of the caller's organization"""
    membership = (await db.execute(
        select(OrganizationMember)
        .where(OrganizationMember.user_id == user.id)
        .order_by(OrganizationMember.created_at.asc())
        .limit(1)
    )).scalar_one_or_none()
    if membership is None:
        raise HTTPException(status_code=403, detail="You don't have access to any organization")

    stmt = (
        _page_query()
        .join(Project, Project.id == WikiPage.project_id)
        .where(Project.organization_id == membership.organization_id, WikiPage.published.is_(True))
        .order_by(WikiPage.updated_at.desc())
    )
    result = await db.execute(stmt)
    return [wiki_page_out(p) for p in result.scalars().all()]


@router.get("/projects/{project_id}/pages", response_model=List[WikiPageOut])
async def list_project_pages(
    project_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_project(db, project_id, user.id)
    stmt = (
        _page_query()
        .where(WikiPage.project_id == project_id, WikiPage.published.is_(True))
        .order_by(WikiPage.updated_at.desc())
    )
    result = await db.execute(stmt)
    return [wiki_page_out(p) for p in result.scalars().all()]


@router.get("/projects/{project_id}/pages/by-slug/{slug}", response_model=WikiPageOut)
async def get_page_by_slug(
    project_id: str,
    slug: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_project(db, project_id, user.id)
    stmt = _page_query().where(WikiPage.project_id == project_id, WikiPage.slug == slug)
    page = (await db.execute(stmt)).scalar_one_or_none()
    if page is None:
        raise HTTPException(status_code=404, detail="Wiki page not found")
    return wiki_page_out(page)


@router.get("/projects/{project_id}/search", response_model=List[WikiPageOut])
async def search_pages(
    project_id: str,
    q: str = Query(..., min_length=1),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Case-insensitive match on title or content, published pages only"""
    await resolve_project(db, project_id, user.id)
    stmt = (
        _page_query()
        .where(
            WikiPage.project_id == project_id,
            WikiPage.published.is_(True),
            or_(
                WikiPage.title.icontains(q, autoescape=True),
                WikiPage.content.icontains(q, autoescape=True),
            ),
        )
        .order_by(WikiPage.updated_at.desc())
    )
    result = await db.execute(stmt)
    return [wiki_page_out(p) for p in result.scalars().all()]


@router.get("/pages/{page_id}", response_model=WikiPageOut)
async def get_page(
    page_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_wiki_page(db, page_id, user.id)
    return wiki_page_out(await _load_page(db, page_id))


# ============================================================
# WRITE ENDPOINTS
# ============================================================

@router.post("/pages", response_model=WikiPageOut)
async def create_page(
    data: WikiPageCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a page under an explicit slug"""
    await resolve_project(db, data.project_id, user.id)
    if await slug_taken(db, data.project_id, data.slug):
        raise HTTPException(status_code=409, detail=SLUG_CONFLICT)

    page = WikiPage(
        project_id=data.project_id,
        title=data.title,
        content=data.content,
        slug=data.slug,
        published=data.published,
        created_by_id=user.id,
    )
    db.add(page)
    await _commit_slug(db, data.project_id, page.slug)

    logger.info(f"Wiki page {page.slug} created in project {data.project_id} by {user.id}")
    return wiki_page_out(await _load_page(db, page.id))


@router.post("/pages/simple", response_model=WikiPageOut)
async def create_page_simple(
    data: WikiPageCreateSimple,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a page whose slug is derived from its title, suffixed until unique"""
    await resolve_project(db, data.project_id, user.id)
    slug = await unique_wiki_slug(db, data.project_id, data.title)

    page = WikiPage(
        project_id=data.project_id,
        title=data.title,
        content=data.content,
        slug=slug,
        published=data.published,
        created_by_id=user.id,
    )
    db.add(page)
    await _commit_slug(db, data.project_id, slug)

    logger.info(f"Wiki page {slug} created in project {data.project_id} by {user.id}")
    return wiki_page_out(await _load_page(db, page.id))


@router.patch("/pages/{page_id}", response_model=WikiPageOut)
async def update_page(
    page_id: str,
    data: WikiPageUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_wiki_page(db, page_id, user.id)
    page = access.resource

    if data.slug is not None and data.slug != page.slug:
        if await slug_taken(db, page.project_id, data.slug):
            raise HTTPException(status_code=409, detail=SLUG_CONFLICT)
        page.slug = data.slug

    if data.title is not None:
        page.title = data.title
    if data.content is not None:
        page.content = data.content
    if data.published is not None:
        page.published = data.published
    page.last_edited_by_id = user.id

    await _commit_slug(db, page.project_id, page.slug)
    return wiki_page_out(await _load_page(db, page_id))


@router.delete("/pages/{page_id}")
async def delete_page(
    page_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a page (its creator, or an OWNER/ADMIN)"""
    access = await resolve_wiki_page(db, page_id, user.id)
    page = access.resource
    require_creator_or_admin(
        access, page.created_by_id, user.id, "You don't have permission to delete this wiki page",
    )

    await db.delete(page)
    db.add(AuditLog(
        event_type=AuditEventType.WIKI_PAGE_DELETED,
        user_id=user.id,
        organization_id=access.organization_id,
        resource_type="wiki_page",
        resource_id=page_id,
        details={"slug": page.slug},
    ))
    await db.commit()

    logger.info(f"Wiki page {page_id} deleted by {user.id}")
    return {"success": True}
