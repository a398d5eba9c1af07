from __future__ import annotations
import uuid
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from ..models import Note


async def list_for_email(db: AsyncSession, email: str) -> Sequence[Note]:
    # newest first
    res = await db.execute(
        select(Note).where(Note.user_email == email).order_by(Note.created_at.desc())
    )
    return list(res.scalars().all())


async def get_by_id(db: AsyncSession, note_id: uuid.UUID) -> Optional[Note]:
    res = await db.execute(select(Note).where(Note.id == note_id))
    return res.scalar_one_or_none()


async def create_note(db: AsyncSession, *, user_email: str, content: str) -> Note:
    note = Note(user_email=user_email, content=content)
    db.add(note)
    await db.flush()
    return note


async def delete_by_id(db: AsyncSession, note_id: uuid.UUID) -> int:
    res = await db.execute(delete(Note).where(Note.id == note_id))
    return res.rowcount or 0
