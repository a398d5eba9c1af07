from __future__ import annotations
import uuid
from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ..models import Account, AccountStatus


def normalize_email(email: str) -> str:
    return str(email).strip().lower()


async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> Optional[Account]:
    res = await db.execute(select(Account).where(Account.id == account_id))
    return res.scalar_one_or_none()


async def get_by_email(db: AsyncSession, email: str) -> Optional[Account]:
    res = await db.execute(select(Account).where(Account.email == normalize_email(email)))
    return res.scalar_one_or_none()


async def upsert_pending(
    db: AsyncSession,
    *,
    email: str,
    name: str,
    dob: date,
) -> Account:
    """Create a pending account, or refresh name/dob on an existing one.

    Callers must reject verified accounts before getting here.
    """
    account = await get_by_email(db, email)
    if account:
        account.name = name
        account.dob = dob
        await db.flush()
        return account

    account = Account(
        name=name,
        dob=dob,
        email=normalize_email(email),
        status=AccountStatus.PENDING.value,
    )
    db.add(account)
    await db.flush()
    return account
