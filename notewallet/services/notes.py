from __future__ import annotations
import logging
import uuid
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Account, Note
from ..repos import accounts as accounts_repo
from ..repos import notes as notes_repo
from ..observability.metrics import NOTES_CREATED, NOTES_DELETED

log = logging.getLogger(__name__)


class NoteError(Exception): ...
class AccountNotFound(NoteError): ...
class NoteNotFound(NoteError): ...
class NotOwner(NoteError): ...
class EmptyContent(NoteError): ...


async def _resolve_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    account = await accounts_repo.get_by_id(db, account_id)
    if not account:
        raise AccountNotFound()
    return account


def _parse_note_id(note_id: str | uuid.UUID) -> uuid.UUID:
    if isinstance(note_id, uuid.UUID):
        return note_id
    try:
        return uuid.UUID(note_id)
    except (ValueError, TypeError):
        # a malformed id can never name an existing note
        raise NoteNotFound()


async def list_notes(db: AsyncSession, account_id: uuid.UUID) -> Sequence[Note]:
    account = await _resolve_account(db, account_id)
    return await notes_repo.list_for_email(db, account.email)


async def create_note(db: AsyncSession, account_id: uuid.UUID, content: str) -> Note:
    account = await _resolve_account(db, account_id)
    if not content or not content.strip():
        raise EmptyContent()

    note = await notes_repo.create_note(db, user_email=account.email, content=content)
    await db.commit()
    NOTES_CREATED.inc()
    return note


async def delete_note(db: AsyncSession, account_id: uuid.UUID, note_id: str | uuid.UUID) -> None:
    """
    Remove a note owned by the caller:
      - unknown (or malformed) id -> NoteNotFound
      - note owned by another email -> NotOwner
    """
    nid = _parse_note_id(note_id)
    note = await notes_repo.get_by_id(db, nid)
    if not note:
        raise NoteNotFound()

    account = await _resolve_account(db, account_id)
    if note.user_email != account.email:
        log.warning("note_delete_forbidden", extra={"account_id": str(account_id), "note_id": str(nid)})
        raise NotOwner()

    await notes_repo.delete_by_id(db, nid)
    await db.commit()
    NOTES_DELETED.inc()
