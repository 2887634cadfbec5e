# slugs.py — URL-safe wiki page slugs, unique within a project
import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import WikiPage

MAX_SLUG_LENGTH = 50
DEFAULT_SLUG = "page"
SLUG_PATTERN = r"^[a-z0-9-]+$"


def slugify_title(title: str) -> str:
    """Derive a slug from a page title, e.g. "Setup Guide!" -> "setup-guide"."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    slug = slug[:MAX_SLUG_LENGTH]
    slug = re.sub(r"^-|-$", "", slug)
    return slug or DEFAULT_SLUG


async def slug_taken(db: AsyncSession, project_id: str, slug: str) -> bool:
    stmt = select(WikiPage.id).where(WikiPage.project_id == project_id, WikiPage.slug == slug)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def unique_wiki_slug(db: AsyncSession, project_id: str, title: str) -> str:
    """Probe the project for the title's slug, appending -1, -2, ... until one is free"""
    base = slugify_title(title)
    slug = base
    counter = 1
    while await slug_taken(db, project_id, slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug
