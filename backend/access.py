"""
Authorization resolver.

Every procedure that touches an organization's data asks the same question: is the
caller a member of the organization that owns this resource? The resolvers below walk
the resource's foreign keys up to its project (fixed-depth joins), then check for the
caller's OrganizationMember row. Nothing is cached; each call reads the database.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import (
    OrganizationMember, MemberRole, ADMIN_ROLES,
    Project, Board, BoardList, Card, Label, Comment, WikiPage,
)

logger = logging.getLogger("plainboard.access")


@dataclass
class ResourceAccess:
    """A resource the caller may act on, with the membership that grants it"""
    resource: Any
    organization_id: str
    membership: OrganizationMember

    @property
    def role(self) -> MemberRole:
        return MemberRole(self.membership.role)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def require_organization_member(
    db: AsyncSession,
    user_id: str,
    organization_id: str,
    roles: Optional[Iterable[MemberRole]] = None,
    detail: str = "You don't have access to this organization",
) -> OrganizationMember:
    """Return the caller's membership row, or raise 403.

    When ``roles`` is given the caller's own row must hold one of them.
    """
    stmt = select(OrganizationMember).where(
        OrganizationMember.user_id == user_id,
        OrganizationMember.organization_id == organization_id,
    )
    membership = (await db.execute(stmt)).scalar_one_or_none()

    if membership is None or (roles is not None and MemberRole(membership.role) not in tuple(roles)):
        logger.warning(f"Access denied: user={user_id} org={organization_id} ({detail})")
        raise HTTPException(status_code=403, detail=detail)
    return membership


async def _resolve(db: AsyncSession, stmt, user_id: str, not_found: str, denied: str,
                   roles: Optional[Iterable[MemberRole]] = None) -> ResourceAccess:
    row = (await db.execute(stmt)).first()
    if row is None:
        raise HTTPException(status_code=404, detail=not_found)
    resource, organization_id = row
    membership = await require_organization_member(
        db, user_id, organization_id, roles=roles, detail=denied,
    )
    return ResourceAccess(resource=resource, organization_id=organization_id, membership=membership)


async def resolve_project(db: AsyncSession, project_id: str, user_id: str,
                          roles: Optional[Iterable[MemberRole]] = None,
                          denied: str = "You don't have access to this project") -> ResourceAccess:
    stmt = select(Project, Project.organization_id).where(Project.id == project_id)
    return await _resolve(db, stmt, user_id, "Project not found", denied, roles)


async def resolve_board(db: AsyncSession, board_id: str, user_id: str,
                        denied: str = "You don't have access to this board") -> ResourceAccess:
    stmt = (
        select(Board, Project.organization_id)
        .join(Project, Project.id == Board.project_id)
        .where(Board.id == board_id)
    )
    return await _resolve(db, stmt, user_id, "Board not found", denied)


async def resolve_list(db: AsyncSession, list_id: str, user_id: str,
                       denied: str = "You don't have access to this list") -> ResourceAccess:
    stmt = (
        select(BoardList, Project.organization_id)
        .join(Board, Board.id == BoardList.board_id)
        .join(Project, Project.id == Board.project_id)
        .where(BoardList.id == list_id)
    )
    return await _resolve(db, stmt, user_id, "List not found", denied)


async def resolve_card(db: AsyncSession, card_id: str, user_id: str,
                       denied: str = "You don't have access to this card") -> ResourceAccess:
    stmt = (
        select(Card, Project.organization_id)
        .join(BoardList, BoardList.id == Card.list_id)
        .join(Board, Board.id == BoardList.board_id)
        .join(Project, Project.id == Board.project_id)
        .where(Card.id == card_id)
    )
    return await _resolve(db, stmt, user_id, "Card not found", denied)


async def resolve_wiki_page(db: AsyncSession, wiki_page_id: str, user_id: str,
                            denied: str = "You don't have access to this wiki page") -> ResourceAccess:
    stmt = (
        select(WikiPage, Project.organization_id)
        .join(Project, Project.id == WikiPage.project_id)
        .where(WikiPage.id == wiki_page_id)
    )
    return await _resolve(db, stmt, user_id, "Wiki page not found", denied)


async def resolve_comment(db: AsyncSession, comment_id: str, user_id: str,
                          author_only: str = "You can only edit your own comments") -> ResourceAccess:
    """Comments may only be changed by their author, whatever the caller's role."""
    stmt = (
        select(Comment, Project.organization_id)
        .join(Card, Card.id == Comment.card_id)
        .join(BoardList, BoardList.id == Card.list_id)
        .join(Board, Board.id == BoardList.board_id)
        .join(Project, Project.id == Board.project_id)
        .where(Comment.id == comment_id)
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    comment, organization_id = row
    if comment.author_id != user_id:
        raise HTTPException(status_code=403, detail=author_only)
    membership = await require_organization_member(
        db, user_id, organization_id, detail="You don't have access to this comment",
    )
    return ResourceAccess(resource=comment, organization_id=organization_id, membership=membership)


def require_creator_or_admin(access: ResourceAccess, creator_id: str, user_id: str, detail: str) -> None:
    """Allow the resource's creator or an OWNER/ADMIN of its organization"""
    if creator_id != user_id and not access.is_admin:
        logger.warning(f"Permission denied: user={user_id} role={access.role.value} ({detail})")
        raise HTTPException(status_code=403, detail=detail)


async def require_assignable(db: AsyncSession, organization_id: str, user_id: str) -> None:
    """Cards may only be assigned to members of the card's organization"""
    stmt = select(OrganizationMember.id).where(
        OrganizationMember.user_id == user_id,
        OrganizationMember.organization_id == organization_id,
    )
    if (await db.execute(stmt)).scalar_one_or_none() is None:
        raise HTTPException(status_code=400, detail="Assigned user is not a member of this organization")


async def resolve_label(db: AsyncSession, label_id: str, user_id: str,
                        denied: str = "You don't have access to this board") -> ResourceAccess:
    stmt = (
        select(Label, Project.organization_id)
        .join(Board, Board.id == Label.board_id)
        .join(Project, Project.id == Board.project_id)
        .where(Label.id == label_id)
    )
    return await _resolve(db, stmt, user_id, "Label not found", denied)
