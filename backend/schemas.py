# schemas.py — Response models shared by the routers
# Converters only read relationships that the query eager-loaded; anything
# left unloaded is rendered empty instead of triggering a lazy load.
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel
from sqlalchemy import inspect
from sqlalchemy.orm import selectinload

from models import (
    User, OrganizationMember, Organization, Project, Board, BoardList, Card,
    CardLabel, CardWikiPage, Label, Comment, WikiPage,
)

# Everything card_out renders, relative to a Card
CARD_DETAIL_LOADS = (
    selectinload(Card.assigned_to),
    selectinload(Card.created_by),
    selectinload(Card.labels).selectinload(CardLabel.label),
    selectinload(Card.comments).selectinload(Comment.author),
    selectinload(Card.wiki_pages).selectinload(CardWikiPage.wiki_page).selectinload(WikiPage.project),
)


def _ts(dt) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() if isinstance(dt, datetime) else str(dt)


def _enum(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _loaded(obj, attr: str) -> bool:
    return attr not in inspect(obj).unloaded


# ============================================================
# SCHEMAS
# ============================================================

class UserOut(BaseModel):
    id: str
    name: str
    email: str
    image: Optional[str] = None


class ProfileOut(UserOut):
    email_verified: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MemberOut(BaseModel):
    id: str
    user_id: str
    organization_id: str
    role: str
    user: Optional[UserOut] = None
    created_at: Optional[str] = None


class LabelOut(BaseModel):
    id: str
    name: str
    color: str


class CommentOut(BaseModel):
    id: str
    content: str
    card_id: str
    author_id: str
    author: Optional[UserOut] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class WikiPageOut(BaseModel):
    id: str
    title: str
    content: str
    slug: str
    published: bool
    project_id: str
    project_name: Optional[str] = None
    created_by_id: str
    last_edited_by_id: Optional[str] = None
    created_by: Optional[UserOut] = None
    last_edited_by: Optional[UserOut] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CardOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    position: int
    priority: str
    due_date: Optional[str] = None
    list_id: str
    assigned_to_id: Optional[str] = None
    created_by_id: str
    assigned_to: Optional[UserOut] = None
    created_by: Optional[UserOut] = None
    labels: List[LabelOut] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CardDetailOut(CardOut):
    comments: List[CommentOut] = []
    wiki_pages: List[WikiPageOut] = []


class ListOut(BaseModel):
    id: str
    name: str
    position: int
    board_id: str
    cards: List[CardDetailOut] = []


class BoardOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    visibility: str
    project_id: str
    created_by_id: str
    created_by: Optional[UserOut] = None
    lists: List[ListOut] = []
    labels: List[LabelOut] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProjectOut(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    color: str
    organization_id: str
    boards: List[BoardOut] = []
    wiki_pages: List[WikiPageOut] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OrganizationOut(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    members: List[MemberOut] = []
    projects: List[ProjectOut] = []
    created_at: Optional[str] = None


# ============================================================
# CONVERTERS
# ============================================================

def user_out(u: Optional[User]) -> Optional[UserOut]:
    if u is None:
        return None
    return UserOut(id=u.id, name=u.name or "", email=u.email, image=u.image)


def profile_out(u: User) -> ProfileOut:
    return ProfileOut(
        id=u.id, name=u.name or "", email=u.email, image=u.image,
        email_verified=bool(u.email_verified),
        created_at=_ts(u.created_at), updated_at=_ts(u.updated_at),
    )


def member_out(m: OrganizationMember) -> MemberOut:
    return MemberOut(
        id=m.id,
        user_id=m.user_id,
        organization_id=m.organization_id,
        role=_enum(m.role),
        user=user_out(m.user) if _loaded(m, "user") else None,
        created_at=_ts(m.created_at),
    )


def label_out(label: Label) -> LabelOut:
    return LabelOut(id=label.id, name=label.name, color=label.color)


def comment_out(c: Comment) -> CommentOut:
    return CommentOut(
        id=c.id,
        content=c.content,
        card_id=c.card_id,
        author_id=c.author_id,
        author=user_out(c.author) if _loaded(c, "author") else None,
        created_at=_ts(c.created_at),
        updated_at=_ts(c.updated_at),
    )


def wiki_page_out(p: WikiPage) -> WikiPageOut:
    return WikiPageOut(
        id=p.id,
        title=p.title,
        content=p.content or "",
        slug=p.slug,
        published=bool(p.published),
        project_id=p.project_id,
        project_name=p.project.name if _loaded(p, "project") and p.project else None,
        created_by_id=p.created_by_id,
        last_edited_by_id=p.last_edited_by_id,
        created_by=user_out(p.created_by) if _loaded(p, "created_by") else None,
        last_edited_by=user_out(p.last_edited_by) if _loaded(p, "last_edited_by") else None,
        created_at=_ts(p.created_at),
        updated_at=_ts(p.updated_at),
    )


def card_out(c: Card) -> CardDetailOut:
    labels = []
    if _loaded(c, "labels"):
        labels = [label_out(cl.label) for cl in c.labels if _loaded(cl, "label") and cl.label]
    comments = [comment_out(cm) for cm in c.comments] if _loaded(c, "comments") else []
    wiki_pages = []
    if _loaded(c, "wiki_pages"):
        wiki_pages = [
            wiki_page_out(ref.wiki_page)
            for ref in c.wiki_pages
            if _loaded(ref, "wiki_page") and ref.wiki_page
        ]
    return CardDetailOut(
        id=c.id,
        title=c.title,
        description=c.description,
        position=c.position or 0,
        priority=_enum(c.priority),
        due_date=_ts(c.due_date),
        list_id=c.list_id,
        assigned_to_id=c.assigned_to_id,
        created_by_id=c.created_by_id,
        assigned_to=user_out(c.assigned_to) if _loaded(c, "assigned_to") else None,
        created_by=user_out(c.created_by) if _loaded(c, "created_by") else None,
        labels=labels,
        comments=comments,
        wiki_pages=wiki_pages,
        created_at=_ts(c.created_at),
        updated_at=_ts(c.updated_at),
    )


def list_out(lst: BoardList) -> ListOut:
    cards = [card_out(c) for c in lst.cards] if _loaded(lst, "cards") else []
    return ListOut(id=lst.id, name=lst.name, position=lst.position or 0, board_id=lst.board_id, cards=cards)


def board_out(b: Board) -> BoardOut:
    return BoardOut(
        id=b.id,
        name=b.name,
        description=b.description,
        visibility=_enum(b.visibility),
        project_id=b.project_id,
        created_by_id=b.created_by_id,
        created_by=user_out(b.created_by) if _loaded(b, "created_by") else None,
        lists=[list_out(lst) for lst in b.lists] if _loaded(b, "lists") else [],
        labels=[label_out(label) for label in b.labels] if _loaded(b, "labels") else [],
        created_at=_ts(b.created_at),
        updated_at=_ts(b.updated_at),
    )


def project_out(p: Project, published_only: bool = False) -> ProjectOut:
    wiki_pages = []
    if _loaded(p, "wiki_pages"):
        wiki_pages = [wiki_page_out(w) for w in p.wiki_pages if w.published or not published_only]
    return ProjectOut(
        id=p.id,
        name=p.name,
        description=p.description,
        color=p.color,
        organization_id=p.organization_id,
        boards=[board_out(b) for b in p.boards] if _loaded(p, "boards") else [],
        wiki_pages=wiki_pages,
        created_at=_ts(p.created_at),
        updated_at=_ts(p.updated_at),
    )


def organization_out(o: Organization) -> OrganizationOut:
    return OrganizationOut(
        id=o.id,
        name=o.name,
        slug=o.slug,
        description=o.description,
        members=[member_out(m) for m in o.members] if _loaded(o, "members") else [],
        projects=[project_out(p) for p in o.projects] if _loaded(o, "projects") else [],
        created_at=_ts(o.created_at),
    )
