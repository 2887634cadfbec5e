# models.py — Database models for Plainboard
# - String UUID primary keys everywhere
# - One self-hosted organization with role-based membership
# - Project → Board → List → Card hierarchy, per-project wiki
# - Child rows are removed by ON DELETE CASCADE

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, String, DateTime, JSON, Boolean, Integer,
    Enum as SQLEnum, ForeignKey, Text, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ============================================================
# ENUMS
# ============================================================

class MemberRole(str, PyEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class BoardVisibility(str, PyEnum):
    PRIVATE = "PRIVATE"
    ORGANIZATION = "ORGANIZATION"
    PUBLIC = "PUBLIC"


class CardPriority(str, PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class AuditEventType(str, PyEnum):
    # Auth events
    USER_REGISTER = "auth.user.register"
    USER_LOGIN = "auth.user.login"
    USER_LOGOUT = "auth.user.logout"
    # Organization events
    ORG_CREATED = "org.created"
    ORG_UPDATED = "org.updated"
    ORG_MEMBER_ADDED = "org.member.added"
    ORG_MEMBER_REMOVED = "org.member.removed"
    # Resource deletion
    PROJECT_DELETED = "project.deleted"
    BOARD_DELETED = "board.deleted"
    WIKI_PAGE_DELETED = "wiki.page.deleted"


ADMIN_ROLES = (MemberRole.OWNER, MemberRole.ADMIN)


# ============================================================
# USERS & ACCOUNTS
# ============================================================

class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, nullable=False, index=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    accounts = relationship("Account", back_populates="user", passive_deletes=True)
    memberships = relationship("OrganizationMember", back_populates="user", passive_deletes=True)


class Account(Base):
    """Sign-in method linked to a user: local credentials or an OAuth provider"""
    __tablename__ = "accounts"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String, nullable=False)  # "credential", "github", "google"
    account_id = Column(String, nullable=False)
    password_hash = Column(String, nullable=True)  # only for provider_id == "credential"
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint("provider_id", "account_id", name="uq_account_provider"),
    )


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(String, primary_key=True, default=new_uuid)
    jti = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)


# ============================================================
# ORGANIZATION
# ============================================================

class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=new_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    members = relationship(
        "OrganizationMember", back_populates="organization",
        order_by="OrganizationMember.created_at", passive_deletes=True,
    )
    projects = relationship(
        "Project", back_populates="organization",
        order_by="Project.created_at.desc()", passive_deletes=True,
    )


class OrganizationMember(Base):
    __tablename__ = "organization_members"

    id = Column(String, primary_key=True, default=new_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = Column(SQLEnum(MemberRole), nullable=False, default=MemberRole.MEMBER)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="members")

    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_member_user_org"),
    )


# ============================================================
# PROJECTS
# ============================================================

class Project(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_uuid)
    organization_id = Column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String, nullable=False, default="#3b82f6")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    organization = relationship("Organization", back_populates="projects")
    boards = relationship(
        "Board", back_populates="project", order_by="Board.created_at.desc()", passive_deletes=True,
    )
    wiki_pages = relationship(
        "WikiPage", back_populates="project", order_by="WikiPage.updated_at.desc()", passive_deletes=True,
    )


# ============================================================
# KANBAN: BOARD / LIST / CARD
# ============================================================

class Board(Base):
    __tablename__ = "boards"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    visibility = Column(SQLEnum(BoardVisibility), nullable=False, default=BoardVisibility.ORGANIZATION)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="boards")
    created_by = relationship("User")
    lists = relationship(
        "BoardList", back_populates="board", order_by="BoardList.position", passive_deletes=True,
    )
    labels = relationship("Label", back_populates="board", order_by="Label.name", passive_deletes=True)


class BoardList(Base):
    """Column of a board; position orders display and need not be unique"""
    __tablename__ = "lists"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    board = relationship("Board", back_populates="lists")
    cards = relationship("Card", back_populates="list", order_by="Card.position", passive_deletes=True)

    __table_args__ = (
        Index("idx_list_board_pos", "board_id", "position"),
    )


class Card(Base):
    __tablename__ = "cards"

    id = Column(String, primary_key=True, default=new_uuid)
    list_id = Column(String, ForeignKey("lists.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    position = Column(Integer, nullable=False, default=0)
    priority = Column(SQLEnum(CardPriority), nullable=False, default=CardPriority.MEDIUM)
    due_date = Column(DateTime(timezone=True), nullable=True)
    assigned_to_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    list = relationship("BoardList", back_populates="cards")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    labels = relationship("CardLabel", back_populates="card", passive_deletes=True)
    comments = relationship(
        "Comment", back_populates="card", order_by="Comment.created_at.desc()", passive_deletes=True,
    )
    wiki_pages = relationship(
        "CardWikiPage", back_populates="card", order_by="CardWikiPage.created_at.desc()", passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_card_list_pos", "list_id", "position"),
    )


class Label(Base):
    __tablename__ = "labels"

    id = Column(String, primary_key=True, default=new_uuid)
    board_id = Column(String, ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="#6366f1")
    created_at = Column(DateTime(timezone=True), default=utcnow)

    board = relationship("Board", back_populates="labels")


class CardLabel(Base):
    __tablename__ = "card_labels"

    id = Column(String, primary_key=True, default=new_uuid)
    card_id = Column(String, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    label_id = Column(String, ForeignKey("labels.id", ondelete="CASCADE"), nullable=False, index=True)

    card = relationship("Card", back_populates="labels")
    label = relationship("Label")

    __table_args__ = (
        UniqueConstraint("card_id", "label_id", name="uq_card_label"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String, primary_key=True, default=new_uuid)
    card_id = Column(String, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    card = relationship("Card", back_populates="comments")
    author = relationship("User")


# ============================================================
# WIKI
# ============================================================

class WikiPage(Base):
    __tablename__ = "wiki_pages"

    id = Column(String, primary_key=True, default=new_uuid)
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    slug = Column(String, nullable=False)
    published = Column(Boolean, nullable=False, default=False)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=False)
    last_edited_by_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    project = relationship("Project", back_populates="wiki_pages")
    created_by = relationship("User", foreign_keys=[created_by_id])
    last_edited_by = relationship("User", foreign_keys=[last_edited_by_id])

    __table_args__ = (
        UniqueConstraint("project_id", "slug", name="uq_wiki_project_slug"),
    )


class CardWikiPage(Base):
    __tablename__ = "card_wiki_pages"

    id = Column(String, primary_key=True, default=new_uuid)
    card_id = Column(String, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    wiki_page_id = Column(String, ForeignKey("wiki_pages.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    card = relationship("Card", back_populates="wiki_pages")
    wiki_page = relationship("WikiPage")

    __table_args__ = (
        UniqueConstraint("card_id", "wiki_page_id", name="uq_card_wiki_page"),
    )


# ============================================================
# AUDIT LOGS (Append-only, never update or delete)
# ============================================================

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=new_uuid)
    timestamp = Column(DateTime(timezone=True), default=utcnow, index=True)
    event_type = Column(SQLEnum(AuditEventType), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    organization_id = Column(String, nullable=True, index=True)
    resource_type = Column(String, nullable=True)
    resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    request_id = Column(String, index=True, unique=True, default=new_uuid)

    __table_args__ = (
        Index("idx_audit_org_timestamp", "organization_id", "timestamp"),
    )
