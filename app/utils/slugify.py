import re
import unicodedata

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


def slugify(text: str) -> str:
    # "Camiseta Básica" -> "camiseta-basica"
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text).strip("-")
    return text.lower()


async def slug_taken(db: AsyncSession, model, slug: str, exclude_id=None) -> bool:
    stmt = select(model.id).where(model.slug == slug)
    if exclude_id is not None:
        stmt = stmt.where(model.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def generate_unique_slug(db: AsyncSession, model, base_text: str) -> str:
    slug = slugify(base_text) or "item"
    candidate = slug
    i = 2
    while await slug_taken(db, model, candidate):
        candidate = f"{slug}-{i}"
        i += 1
    return candidate
