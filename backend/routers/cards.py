# routers/cards.py — Cards, their comments, labels and wiki page references
import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from access import (
    resolve_list, resolve_card, resolve_comment, resolve_wiki_page, resolve_label,
    require_assignable,
)
from auth import get_current_user, CurrentUser
from card_views import as_utc
from database import get_db_session
from models import (
    Card, CardLabel, CardWikiPage, Comment, WikiPage, BoardList, Board, CardPriority,
)
from schemas import (
    CardDetailOut, CommentOut, WikiPageOut, CARD_DETAIL_LOADS,
    card_out, comment_out, wiki_page_out,
)

router = APIRouter(prefix="/api/v1", tags=["Cards"])
logger = logging.getLogger("plainboard.cards")


# ============================================================
# SCHEMAS
# ============================================================

class CardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    list_id: str
    position: Optional[int] = Field(default=None, ge=0)  # None appends to the list
    assigned_to_id: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: CardPriority = CardPriority.MEDIUM


class CardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    list_id: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)
    assigned_to_id: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[CardPriority] = None


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)


class WikiReferenceCreate(BaseModel):
    wiki_page_id: str


class CardLabelAdd(BaseModel):
    label_id: str


# ============================================================
# HELPERS
# ============================================================

async def _load_card(db: AsyncSession, card_id: str) -> Card:
    stmt = (
        select(Card)
        .where(Card.id == card_id)
        .options(*CARD_DETAIL_LOADS)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one()


async def _next_position(db: AsyncSession, list_id: str) -> int:
    result = await db.execute(select(func.max(Card.position)).where(Card.list_id == list_id))
    current = result.scalar()
    return 0 if current is None else current + 1


async def _card_board_id(db: AsyncSession, card: Card) -> str:
    result = await db.execute(select(BoardList.board_id).where(BoardList.id == card.list_id))
    return result.scalar_one()


# ============================================================
# CARD ENDPOINTS
# ============================================================

@router.get("/cards/{card_id}", response_model=CardDetailOut)
async def get_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_card(db, card_id, user.id)
    return card_out(await _load_card(db, card_id))


@router.post("/cards", response_model=CardDetailOut)
async def create_card(
    data: CardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_list(db, data.list_id, user.id)
    if data.assigned_to_id is not None:
        await require_assignable(db, access.organization_id, data.assigned_to_id)

    position = data.position if data.position is not None else await _next_position(db, data.list_id)
    card = Card(
        list_id=data.list_id,
        title=data.title,
        description=data.description,
        position=position,
        priority=data.priority,
        due_date=as_utc(data.due_date),
        assigned_to_id=data.assigned_to_id,
        created_by_id=user.id,
    )
    db.add(card)
    await db.commit()

    logger.info(f"Card {card.id} created in list {data.list_id} by {user.id}")
    return card_out(await _load_card(db, card.id))


@router.patch("/cards/{card_id}", response_model=CardDetailOut)
async def update_card(
    card_id: str,
    data: CardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Edit a card or move it; moving to another list needs access to that list.

    ``assigned_to_id`` and ``due_date`` may be sent as null to clear them.
    """
    access = await resolve_card(db, card_id, user.id)
    card = access.resource
    organization_id = access.organization_id

    if data.list_id is not None and data.list_id != card.list_id:
        target = await resolve_list(
            db, data.list_id, user.id, denied="You don't have access to the target list",
        )
        organization_id = target.organization_id
        card.list_id = data.list_id

    if "assigned_to_id" in data.model_fields_set:
        if data.assigned_to_id is not None:
            await require_assignable(db, organization_id, data.assigned_to_id)
        card.assigned_to_id = data.assigned_to_id
    if "due_date" in data.model_fields_set:
        card.due_date = as_utc(data.due_date)

    if data.title is not None:
        card.title = data.title
    if data.description is not None:
        card.description = data.description
    if data.position is not None:
        card.position = data.position
    if data.priority is not None:
        card.priority = data.priority

    await db.commit()
    return card_out(await _load_card(db, card_id))


@router.delete("/cards/{card_id}")
async def delete_card(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_card(db, card_id, user.id)
    await db.delete(access.resource)
    await db.commit()
    return {"success": True}


# ============================================================
# COMMENTS
# ============================================================

@router.post("/cards/{card_id}/comments", response_model=CommentOut)
async def add_comment(
    card_id: str,
    data: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_card(db, card_id, user.id)

    comment = Comment(card_id=card_id, author_id=user.id, content=data.content)
    db.add(comment)
    await db.commit()

    stmt = (
        select(Comment)
        .where(Comment.id == comment.id)
        .options(selectinload(Comment.author))
        .execution_options(populate_existing=True)
    )
    return comment_out((await db.execute(stmt)).scalar_one())


@router.patch("/comments/{comment_id}", response_model=CommentOut)
async def update_comment(
    comment_id: str,
    data: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Only the author may edit a comment, whatever their role"""
    access = await resolve_comment(db, comment_id, user.id)
    access.resource.content = data.content
    await db.commit()

    stmt = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(selectinload(Comment.author))
        .execution_options(populate_existing=True)
    )
    return comment_out((await db.execute(stmt)).scalar_one())


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_comment(
        db, comment_id, user.id, author_only="You can only delete your own comments",
    )
    await db.delete(access.resource)
    await db.commit()
    return {"success": True}


# ============================================================
# LABELS
# ============================================================

@router.post("/cards/{card_id}/labels", response_model=CardDetailOut)
async def add_card_label(
    card_id: str,
    data: CardLabelAdd,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Attach one of the board's labels to the card"""
    card_access = await resolve_card(db, card_id, user.id)
    label_access = await resolve_label(db, data.label_id, user.id)

    if label_access.resource.board_id != await _card_board_id(db, card_access.resource):
        raise HTTPException(status_code=400, detail="Label does not belong to this card's board")

    existing = await db.execute(
        select(CardLabel.id).where(CardLabel.card_id == card_id, CardLabel.label_id == data.label_id)
    )
    if existing.scalar_one_or_none() is None:
        db.add(CardLabel(card_id=card_id, label_id=data.label_id))
        await db.commit()

    return card_out(await _load_card(db, card_id))


@router.delete("/cards/{card_id}/labels/{label_id}", response_model=CardDetailOut)
async def remove_card_label(
    card_id: str,
    label_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_card(db, card_id, user.id)

    result = await db.execute(
        select(CardLabel).where(CardLabel.card_id == card_id, CardLabel.label_id == label_id)
    )
    link = result.scalar_one_or_none()
    if link is not None:
        await db.delete(link)
        await db.commit()

    return card_out(await _load_card(db, card_id))


# ============================================================
# WIKI PAGE REFERENCES
# ============================================================

@router.post("/cards/{card_id}/wiki-pages", response_model=WikiPageOut)
async def add_wiki_page_reference(
    card_id: str,
    data: WikiReferenceCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Link a wiki page of the organization to the card"""
    await resolve_card(db, card_id, user.id)
    await resolve_wiki_page(db, data.wiki_page_id, user.id)

    existing = await db.execute(
        select(CardWikiPage.id).where(
            CardWikiPage.card_id == card_id,
            CardWikiPage.wiki_page_id == data.wiki_page_id,
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Wiki page is already referenced by this card")

    db.add(CardWikiPage(card_id=card_id, wiki_page_id=data.wiki_page_id))
    await db.commit()

    stmt = (
        select(WikiPage)
        .where(WikiPage.id == data.wiki_page_id)
        .options(selectinload(WikiPage.project), selectinload(WikiPage.created_by))
        .execution_options(populate_existing=True)
    )
    return wiki_page_out((await db.execute(stmt)).scalar_one())


@router.delete("/cards/{card_id}/wiki-pages/{wiki_page_id}")
async def remove_wiki_page_reference(
    card_id: str,
    wiki_page_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_card(db, card_id, user.id)

    result = await db.execute(
        select(CardWikiPage).where(
            CardWikiPage.card_id == card_id,
            CardWikiPage.wiki_page_id == wiki_page_id,
        )
    )
    reference = result.scalar_one_or_none()
    if reference is None:
        raise HTTPException(status_code=404, detail="Wiki page reference not found")

    await db.delete(reference)
    await db.commit()
    return {"success": True}


@router.get("/cards/{card_id}/available-wiki-pages", response_model=List[WikiPageOut])
async def get_available_wiki_pages(
    card_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Published pages of the card's project not yet referenced by it"""
    await resolve_card(db, card_id, user.id)

    project_id = (await db.execute(
        select(Board.project_id)
        .join(BoardList, BoardList.board_id == Board.id)
        .join(Card, Card.list_id == BoardList.id)
        .where(Card.id == card_id)
    )).scalar_one()
    referenced = select(CardWikiPage.wiki_page_id).where(CardWikiPage.card_id == card_id)

    stmt = (
        select(WikiPage)
        .where(
            WikiPage.project_id == project_id,
            WikiPage.published.is_(True),
            WikiPage.id.not_in(referenced),
        )
        .options(selectinload(WikiPage.project), selectinload(WikiPage.created_by))
        .order_by(WikiPage.updated_at.desc())
    )
    result = await db.execute(stmt)
    return [wiki_page_out(p) for p in result.scalars().all()]
