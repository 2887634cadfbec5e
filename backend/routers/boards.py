# routers/boards.py — Kanban boards, their lists and labels, plus derived card views
import logging
from datetime import datetime, timezone
from typing import Optional, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from access import (
    resolve_project, resolve_board, resolve_list, resolve_label, require_creator_or_admin,
)
from auth import get_current_user, CurrentUser
from card_views import (
    sort_cards, due_label, days_remaining, calendar_month, cards_without_due_date, overdue_cards,
)
from database import get_db_session
from models import (
    Board, BoardList, Label, BoardVisibility, AuditLog, AuditEventType,
)
from schemas import (
    BoardOut, ListOut, LabelOut, CardDetailOut, CARD_DETAIL_LOADS,
    board_out, list_out, label_out, card_out,
)

router = APIRouter(prefix="/api/v1", tags=["Boards"])
logger = logging.getLogger("plainboard.boards")

# Every new board starts with these lists
DEFAULT_LISTS = [
    {"name": "To Do", "position": 0},
    {"name": "In Progress", "position": 1},
    {"name": "Done", "position": 2},
]


# ============================================================
# SCHEMAS
# ============================================================

# --- Board ---
class BoardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    project_id: str
    visibility: BoardVisibility = BoardVisibility.ORGANIZATION


class BoardUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    visibility: Optional[BoardVisibility] = None


# --- List ---
class ListCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    position: int = Field(..., ge=0)


class ListUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    position: Optional[int] = Field(default=None, ge=0)


# --- Label ---
class LabelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default="#6366f1", pattern=r"^#[0-9A-Fa-f]{6}$")


# --- Views ---
class WaterfallCard(BaseModel):
    card: CardDetailOut
    due_label: str
    days_remaining: Optional[int] = None


class WaterfallStage(BaseModel):
    list_id: str
    list_name: str
    position: int
    progress: float  # share of stages up to and including this one
    cards: List[WaterfallCard] = []


class CalendarDayOut(BaseModel):
    date: str
    is_current_month: bool
    is_today: bool
    cards: List[CardDetailOut] = []


class CalendarOut(BaseModel):
    year: int
    month: int
    days: List[CalendarDayOut]
    without_due_date: List[CardDetailOut] = []
    overdue: List[CardDetailOut] = []


# ============================================================
# HELPERS
# ============================================================

async def _load_board(db: AsyncSession, board_id: str) -> Board:
    stmt = (
        select(Board)
        .where(Board.id == board_id)
        .options(
            selectinload(Board.created_by),
            selectinload(Board.labels),
            selectinload(Board.lists).selectinload(BoardList.cards).options(*CARD_DETAIL_LOADS),
        )
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one()


def _board_cards(board: Board):
    """(card, list) pairs across the whole board"""
    return [(card, lst) for lst in board.lists for card in lst.cards]


# ============================================================
# BOARD ENDPOINTS
# ============================================================

@router.get("/boards", response_model=List[BoardOut])
async def list_boards(
    project_id: str = Query(...),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Boards of a project, newest first, with lists and cards"""
    await resolve_project(db, project_id, user.id)
    stmt = (
        select(Board)
        .where(Board.project_id == project_id)
        .options(
            selectinload(Board.created_by),
            selectinload(Board.lists).selectinload(BoardList.cards),
        )
        .order_by(Board.created_at.desc())
    )
    result = await db.execute(stmt)
    return [board_out(b) for b in result.scalars().all()]


@router.get("/boards/{board_id}", response_model=BoardOut)
async def get_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Board with lists, cards, labels, comments and wiki references"""
    await resolve_board(db, board_id, user.id)
    return board_out(await _load_board(db, board_id))


@router.post("/boards", response_model=BoardOut)
async def create_board(
    data: BoardCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Create a board with the default To Do / In Progress / Done lists"""
    await resolve_project(db, data.project_id, user.id)

    board = Board(
        project_id=data.project_id,
        name=data.name,
        description=data.description,
        visibility=data.visibility,
        created_by_id=user.id,
    )
    db.add(board)
    await db.flush()

    for lst in DEFAULT_LISTS:
        db.add(BoardList(board_id=board.id, name=lst["name"], position=lst["position"]))

    await db.commit()
    logger.info(f"Board {board.id} created in project {data.project_id} by {user.id}")
    return board_out(await _load_board(db, board.id))


@router.patch("/boards/{board_id}", response_model=BoardOut)
async def update_board(
    board_id: str,
    data: BoardUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_board(db, board_id, user.id)
    board = access.resource

    if data.name is not None:
        board.name = data.name
    if data.description is not None:
        board.description = data.description
    if data.visibility is not None:
        board.visibility = data.visibility

    await db.commit()
    return board_out(await _load_board(db, board_id))


@router.delete("/boards/{board_id}")
async def delete_board(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a board (its creator, or an OWNER/ADMIN)"""
    access = await resolve_board(db, board_id, user.id)
    board = access.resource
    require_creator_or_admin(
        access, board.created_by_id, user.id, "You don't have permission to delete this board",
    )

    await db.delete(board)
    db.add(AuditLog(
        event_type=AuditEventType.BOARD_DELETED,
        user_id=user.id,
        organization_id=access.organization_id,
        resource_type="board",
        resource_id=board_id,
    ))
    await db.commit()

    logger.info(f"Board {board_id} deleted by {user.id}")
    return {"success": True}


# ============================================================
# LIST ENDPOINTS
# ============================================================

@router.post("/boards/{board_id}/lists", response_model=ListOut)
async def create_list(
    board_id: str,
    data: ListCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_board(db, board_id, user.id)

    lst = BoardList(board_id=board_id, name=data.name, position=data.position)
    db.add(lst)
    await db.commit()
    await db.refresh(lst)
    return list_out(lst)


@router.patch("/lists/{list_id}", response_model=ListOut)
async def update_list(
    list_id: str,
    data: ListUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_list(db, list_id, user.id)
    lst = access.resource

    if data.name is not None:
        lst.name = data.name
    if data.position is not None:
        lst.position = data.position

    await db.commit()
    await db.refresh(lst)
    return list_out(lst)


@router.delete("/lists/{list_id}")
async def delete_list(
    list_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a list together with its cards"""
    access = await resolve_list(db, list_id, user.id)
    await db.delete(access.resource)
    await db.commit()
    return {"success": True}


# ============================================================
# LABEL ENDPOINTS
# ============================================================

@router.post("/boards/{board_id}/labels", response_model=LabelOut)
async def create_label(
    board_id: str,
    data: LabelCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    await resolve_board(db, board_id, user.id)

    label = Label(board_id=board_id, name=data.name, color=data.color)
    db.add(label)
    await db.commit()
    await db.refresh(label)
    return label_out(label)


@router.delete("/labels/{label_id}")
async def delete_label(
    label_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    access = await resolve_label(db, label_id, user.id)
    await db.delete(access.resource)
    await db.commit()
    return {"success": True}


# ============================================================
# DERIVED VIEWS
# ============================================================

@router.get("/boards/{board_id}/waterfall", response_model=List[WaterfallStage])
async def get_waterfall(
    board_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """One stage per list in position order; cards inside a stage by priority, due date, age"""
    await resolve_board(db, board_id, user.id)
    board = await _load_board(db, board_id)

    now = datetime.now(timezone.utc)
    stages = []
    for index, lst in enumerate(board.lists):
        stages.append(WaterfallStage(
            list_id=lst.id,
            list_name=lst.name,
            position=lst.position,
            progress=(index + 1) / len(board.lists),
            cards=[
                WaterfallCard(
                    card=card_out(card),
                    due_label=due_label(card.due_date, now),
                    days_remaining=days_remaining(card.due_date, now) if card.due_date else None,
                )
                for card in sort_cards(lst.cards)
            ],
        ))
    return stages


@router.get("/boards/{board_id}/calendar", response_model=CalendarOut)
async def get_calendar(
    board_id: str,
    year: Optional[int] = Query(default=None, ge=1, le=9999),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Month grid of cards by due date; defaults to the current month"""
    await resolve_board(db, board_id, user.id)
    board = await _load_board(db, board_id)

    today = datetime.now(timezone.utc).date()
    year = year or today.year
    month = month or today.month
    cards = [card for card, _ in _board_cards(board)]

    days = [
        CalendarDayOut(
            date=day.date.isoformat(),
            is_current_month=day.is_current_month,
            is_today=day.is_today,
            cards=[card_out(c) for c in day.cards],
        )
        for day in calendar_month(cards, year, month, today)
    ]
    return CalendarOut(
        year=year,
        month=month,
        days=days,
        without_due_date=[card_out(c) for c in cards_without_due_date(cards)],
        overdue=[card_out(c) for c in overdue_cards(cards, today)],
    )
