# routers/organizations.py — The self-hosted organization and its membership
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from access import require_organization_member
from auth import get_current_user, CurrentUser
from database import get_db_session
from models import (
    Organization, OrganizationMember, Project, User,
    MemberRole, ADMIN_ROLES, AuditLog, AuditEventType,
)
from schemas import OrganizationOut, MemberOut, organization_out, member_out

router = APIRouter(prefix="/api/v1/organization", tags=["Organization"])
logger = logging.getLogger("plainboard.organization")


# --- Schemas ---

class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    slug: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z0-9-]+$")


class OrganizationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


class MemberAdd(BaseModel):
    email: EmailStr
    role: MemberRole = MemberRole.MEMBER


# --- Helpers ---

async def _load_organization(db: AsyncSession, org_id: Optional[str] = None) -> Optional[Organization]:
    stmt = (
        select(Organization)
        .options(
            selectinload(Organization.members).selectinload(OrganizationMember.user),
            selectinload(Organization.projects).selectinload(Project.boards),
            selectinload(Organization.projects).selectinload(Project.wiki_pages),
        )
        .order_by(Organization.created_at.asc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    if org_id is not None:
        stmt = stmt.where(Organization.id == org_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


# --- Endpoints ---

@router.get("", response_model=Optional[OrganizationOut])
async def get_organization(db: AsyncSession = Depends(get_db_session)):
    """Get the deployment's organization, or null before setup"""
    org = await _load_organization(db)
    return organization_out(org) if org else None


@router.post("", response_model=OrganizationOut)
async def create_organization(
    data: OrganizationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create the organization; the caller becomes its OWNER"""
    existing = await db.execute(select(Organization.id).limit(1))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=409,
            detail="Organization already exists. Self-hosted version supports only one organization.",
        )

    org = Organization(name=data.name, description=data.description, slug=data.slug)
    db.add(org)
    await db.flush()

    db.add(OrganizationMember(user_id=user.id, organization_id=org.id, role=MemberRole.OWNER))
    db.add(AuditLog(
        event_type=AuditEventType.ORG_CREATED,
        user_id=user.id,
        organization_id=org.id,
        resource_type="organization",
        resource_id=org.id,
    ))
    await db.commit()

    logger.info(f"Organization {org.slug} created by {user.id}")
    return organization_out(await _load_organization(db, org.id))


@router.patch("/{org_id}", response_model=OrganizationOut)
async def update_organization(
    org_id: str,
    data: OrganizationUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Update name/description (OWNER or ADMIN)"""
    await require_organization_member(
        db, user.id, org_id, roles=ADMIN_ROLES,
        detail="You don't have permission to update this organization",
    )
    org = (await db.execute(select(Organization).where(Organization.id == org_id))).scalar_one()

    if data.name is not None:
        org.name = data.name
    if data.description is not None:
        org.description = data.description

    db.add(AuditLog(
        event_type=AuditEventType.ORG_UPDATED,
        user_id=user.id,
        organization_id=org_id,
        resource_type="organization",
        resource_id=org_id,
    ))
    await db.commit()
    return organization_out(await _load_organization(db, org_id))


@router.post("/{org_id}/members", response_model=MemberOut)
async def add_member(
    org_id: str,
    data: MemberAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Add an existing user by email as MEMBER or ADMIN"""
    await require_organization_member(
        db, user.id, org_id, roles=ADMIN_ROLES,
        detail="You don't have permission to add members",
    )
    if data.role == MemberRole.OWNER:
        raise HTTPException(status_code=400, detail="An organization can only have one owner")

    target = (await db.execute(select(User).where(User.email == data.email))).scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    existing = await db.execute(
        select(OrganizationMember.id).where(
            OrganizationMember.user_id == target.id,
            OrganizationMember.organization_id == org_id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="User is already a member of this organization")

    member = OrganizationMember(user_id=target.id, organization_id=org_id, role=data.role)
    db.add(member)
    db.add(AuditLog(
        event_type=AuditEventType.ORG_MEMBER_ADDED,
        user_id=user.id,
        organization_id=org_id,
        resource_type="organization_member",
        resource_id=target.id,
        details={"role": data.role.value},
    ))
    await db.commit()

    logger.info(f"User {target.id} added to organization {org_id} as {data.role.value}")
    stmt = (
        select(OrganizationMember)
        .where(OrganizationMember.id == member.id)
        .options(selectinload(OrganizationMember.user))
        .execution_options(populate_existing=True)
    )
    return member_out((await db.execute(stmt)).scalar_one())


@router.delete("/{org_id}/members/{user_id}")
async def remove_member(
    org_id: str,
    user_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Remove a member (OWNER or ADMIN); the OWNER can never be removed"""
    await require_organization_member(
        db, user.id, org_id, roles=ADMIN_ROLES,
        detail="You don't have permission to remove members",
    )

    stmt = select(OrganizationMember).where(
        OrganizationMember.user_id == user_id,
        OrganizationMember.organization_id == org_id,
    )
    target = (await db.execute(stmt)).scalar_one_or_none()
    if not target:
        raise HTTPException(status_code=404, detail="Member not found")
    if MemberRole(target.role) == MemberRole.OWNER:
        raise HTTPException(status_code=400, detail="Cannot remove the organization owner")

    await db.delete(target)
    db.add(AuditLog(
        event_type=AuditEventType.ORG_MEMBER_REMOVED,
        user_id=user.id,
        organization_id=org_id,
        resource_type="organization_member",
        resource_id=user_id,
    ))
    await db.commit()

    logger.info(f"User {user_id} removed from organization {org_id} by {user.id}")
    return {"success": True}
