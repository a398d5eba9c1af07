# notewallet/services/otp.py
from __future__ import annotations
import logging
import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..models import Account, AccountStatus
from ..repos import accounts as accounts_repo
from ..auth.jwt import issue_token
from ..observability.metrics import OTP_ISSUED, OTP_VERIFIED, MAIL_FAILED
from .mailer import Mailer, MailDeliveryError, OutgoingMail, registration_otp_mail, login_otp_mail

log = logging.getLogger(__name__)

OTP_DIGITS = 6


class AuthError(Exception): ...
class AccountNotFound(AuthError): ...
class AlreadyRegistered(AuthError): ...
class AlreadyVerified(AuthError): ...
class NotVerified(AuthError): ...
class InvalidCode(AuthError): ...
class Expired(AuthError): ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def generate_otp() -> str:
    """Uniformly random, zero-padded numeric code."""
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def codes_match(stored: Optional[str], presented: Optional[str]) -> bool:
    """Single comparison policy for registration and login: trimmed, constant time."""
    if not stored or presented is None:
        return False
    return secrets.compare_digest(stored.strip().encode(), str(presented).strip().encode())


def _ttl_minutes(ttl: timedelta) -> int:
    return int(ttl.total_seconds() // 60)


async def _deliver(mailer: Mailer, mail: OutgoingMail, purpose: str) -> None:
    # The code is already committed; a failed send is neither retried nor rolled back.
    try:
        await mailer.send(mail)
    except MailDeliveryError:
        MAIL_FAILED.labels(purpose=purpose).inc()
        raise
    except Exception as e:
        MAIL_FAILED.labels(purpose=purpose).inc()
        raise MailDeliveryError(str(e)) from e


def _check_code(account: Account, code: str, purpose: str) -> None:
    if not codes_match(account.otp_code, code):
        OTP_VERIFIED.labels(purpose=purpose, outcome="invalid").inc()
        raise InvalidCode()
    if account.otp_expires_at is None or _now_utc() > _as_utc(account.otp_expires_at):
        OTP_VERIFIED.labels(purpose=purpose, outcome="expired").inc()
        raise Expired()


# ---------- Issuer ----------
async def request_registration_otp(
    db: AsyncSession,
    mailer: Mailer,
    *,
    name: str,
    dob: date,
    email: str,
    ttl: timedelta,
) -> Account:
    """
    Start (or restart) registration for `email`:
      - verified account -> AlreadyRegistered
      - otherwise create/refresh the pending account, store a fresh code, mail it
    """
    existing = await accounts_repo.get_by_email(db, email)
    if existing and existing.is_verified:
        raise AlreadyRegistered()

    account = await accounts_repo.upsert_pending(db, email=email, name=name, dob=dob)
    code = generate_otp()
    account.set_otp(code, _now_utc() + ttl)
    await db.commit()

    OTP_ISSUED.labels(purpose="register").inc()
    log.info("otp_issued", extra={"purpose": "register", "account_id": str(account.id)})

    await _deliver(mailer, registration_otp_mail(account.email, code, _ttl_minutes(ttl)), "register")
    return account


async def request_login_otp(
    db: AsyncSession,
    mailer: Mailer,
    *,
    email: str,
    ttl: timedelta,
) -> Account:
    account = await accounts_repo.get_by_email(db, email)
    if not account:
        raise AccountNotFound()
    if not account.is_verified:
        raise NotVerified()

    code = generate_otp()
    account.set_otp(code, _now_utc() + ttl)  # overwrites any earlier code
    await db.commit()

    OTP_ISSUED.labels(purpose="login").inc()
    log.info("otp_issued", extra={"purpose": "login", "account_id": str(account.id)})

    await _deliver(mailer, login_otp_mail(account.email, code, _ttl_minutes(ttl)), "login")
    return account


# ---------- Verifier ----------
async def verify_registration_otp(
    db: AsyncSession,
    settings: Settings,
    *,
    email: str,
    code: str,
) -> str:
    """Confirm a pending account and return a session token for it."""
    account = await accounts_repo.get_by_email(db, email)
    if not account:
        raise AccountNotFound()
    if account.is_verified:
        raise AlreadyVerified()

    _check_code(account, code, "register")

    account.status = AccountStatus.VERIFIED.value
    account.clear_otp()
    await db.commit()

    OTP_VERIFIED.labels(purpose="register", outcome="ok").inc()
    log.info("account_verified", extra={"account_id": str(account.id)})
    return issue_token(account.id, settings)


async def verify_login_otp(
    db: AsyncSession,
    settings: Settings,
    *,
    email: str,
    code: str,
) -> str:
    account = await accounts_repo.get_by_email(db, email)
    if not account:
        raise AccountNotFound()
    if not account.is_verified:
        raise NotVerified()

    _check_code(account, code, "login")

    account.clear_otp()
    await db.commit()

    OTP_VERIFIED.labels(purpose="login", outcome="ok").inc()
    log.info("login_verified", extra={"account_id": str(account.id)})
    return issue_token(account.id, settings)
