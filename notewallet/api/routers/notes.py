from __future__ import annotations
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...db import get_db
from ...auth.deps import get_current_account_id
from ...services import notes as notes_service
from ..schemas import MessageOut, NoteIn, NoteOut

router = APIRouter(prefix="/notes", tags=["notes"])


@router.get("", response_model=List[NoteOut])
async def list_notes(
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        rows = await notes_service.list_notes(db, account_id)
    except notes_service.AccountNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return [NoteOut.from_model(n) for n in rows]


@router.post("", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteIn,
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        note = await notes_service.create_note(db, account_id, payload.content)
    except notes_service.AccountNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except notes_service.EmptyContent:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Note content is required")
    return NoteOut.from_model(note)


@router.delete("/{note_id}", response_model=MessageOut)
async def delete_note(
    note_id: str,
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    try:
        await notes_service.delete_note(db, account_id, note_id)
    except notes_service.NoteNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    except notes_service.AccountNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except notes_service.NotOwner:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return MessageOut(message="Note deleted successfully")
