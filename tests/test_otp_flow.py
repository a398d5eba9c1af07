from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from notewallet.auth.jwt import verify_token
from notewallet.models import AccountStatus
from notewallet.repos import accounts as accounts_repo
from notewallet.services import otp as otp_service
from notewallet.services.mailer import MailDeliveryError
from tests.conftest import RecordingMailer, mk_account

TTL = timedelta(minutes=10)


async def _register(db, mailer, email="a@x.com", name="A"):
    return await otp_service.request_registration_otp(
        db, mailer, name=name, dob=date(2000, 1, 1), email=email, ttl=TTL
    )


def test_generate_otp_is_six_digits():
    for _ in range(200):
        code = otp_service.generate_otp()
        assert len(code) == 6 and code.isdigit()


def test_codes_match_trims_whitespace():
    assert otp_service.codes_match("123456", " 123456 ")
    assert otp_service.codes_match(" 042000", "042000")
    assert not otp_service.codes_match("123456", "123457")
    assert not otp_service.codes_match(None, "123456")
    assert not otp_service.codes_match("123456", None)


async def test_registration_otp_persists_pending_account_and_mails_code(db: AsyncSession, mailer):
    account = await _register(db, mailer)

    assert account.status == AccountStatus.PENDING.value
    assert account.otp_code and len(account.otp_code) == 6
    assert account.otp_expires_at is not None

    assert len(mailer.sent) == 1
    mail = mailer.sent[0]
    assert mail.to == "a@x.com"
    assert account.otp_code in mail.text
    assert "10 minutes" in mail.text


async def test_verify_registration_succeeds_once(db: AsyncSession, mailer, settings, fixed_otp):
    account = await _register(db, mailer)

    token = await otp_service.verify_registration_otp(db, settings, email="a@x.com", code=fixed_otp)
    assert token
    assert verify_token(token, settings) == account.id

    refreshed = await accounts_repo.get_by_email(db, "a@x.com")
    assert refreshed.status == AccountStatus.VERIFIED.value
    assert refreshed.otp_code is None and refreshed.otp_expires_at is None

    with pytest.raises(otp_service.AlreadyVerified):
        await otp_service.verify_registration_otp(db, settings, email="a@x.com", code=fixed_otp)


async def test_only_last_issued_code_is_accepted(db: AsyncSession, mailer, settings):
    await _register(db, mailer)
    await _register(db, mailer)
    first, second = (m.text.split()[3].rstrip(".") for m in mailer.sent)

    if first != second:
        with pytest.raises(otp_service.InvalidCode):
            await otp_service.verify_registration_otp(db, settings, email="a@x.com", code=first)

    with pytest.raises(otp_service.InvalidCode):
        await otp_service.verify_registration_otp(db, settings, email="a@x.com", code="not-a-code")

    token = await otp_service.verify_registration_otp(db, settings, email="a@x.com", code=second)
    assert token


async def test_verify_after_expiry_fails_even_with_right_code(db: AsyncSession, mailer, settings, fixed_otp, monkeypatch):
    await _register(db, mailer)

    later = datetime.now(timezone.utc) + TTL + timedelta(seconds=1)
    monkeypatch.setattr(otp_service, "_now_utc", lambda: later)

    with pytest.raises(otp_service.Expired):
        await otp_service.verify_registration_otp(db, settings, email="a@x.com", code=fixed_otp)

    account = await accounts_repo.get_by_email(db, "a@x.com")
    assert account.status == AccountStatus.PENDING.value


async def test_verify_registration_unknown_email(db: AsyncSession, settings):
    with pytest.raises(otp_service.AccountNotFound):
        await otp_service.verify_registration_otp(db, settings, email="nobody@x.com", code="123456")


async def test_reregistering_pending_account_refreshes_details(db: AsyncSession, mailer):
    first = await _register(db, mailer, name="Old Name")
    second = await _register(db, mailer, name="New Name")

    assert first.id == second.id
    assert second.name == "New Name"
    assert len(mailer.sent) == 2


async def test_registering_verified_email_fails(db: AsyncSession, mailer):
    await mk_account(db, "done@x.com", "Done")
    with pytest.raises(otp_service.AlreadyRegistered):
        await _register(db, mailer, email="done@x.com")
    assert mailer.sent == []


async def test_email_is_case_insensitive(db: AsyncSession, mailer, settings, fixed_otp):
    await _register(db, mailer, email="Mixed@X.com")
    token = await otp_service.verify_registration_otp(db, settings, email="mixed@x.com", code=fixed_otp)
    assert token


async def test_mail_failure_keeps_code_persisted(db: AsyncSession, settings, fixed_otp):
    with pytest.raises(MailDeliveryError):
        await _register(db, RecordingMailer(fail=True))

    account = await accounts_repo.get_by_email(db, "a@x.com")
    assert account is not None
    assert account.otp_code == fixed_otp

    # the undelivered code still verifies
    token = await otp_service.verify_registration_otp(db, settings, email="a@x.com", code=fixed_otp)
    assert token


async def test_login_mail_failure_keeps_code_persisted(db: AsyncSession, settings, fixed_otp):
    a = await mk_account(db, "a@x.com", "A")
    with pytest.raises(MailDeliveryError):
        await otp_service.request_login_otp(db, RecordingMailer(fail=True), email="a@x.com", ttl=TTL)

    account = await accounts_repo.get_by_email(db, "a@x.com")
    assert account.status == AccountStatus.VERIFIED.value
    assert account.otp_code == fixed_otp

    token = await otp_service.verify_login_otp(db, settings, email="a@x.com", code=fixed_otp)
    assert verify_token(token, settings) == a.id


# ---------- login ----------
async def test_login_otp_unknown_email(db: AsyncSession, mailer):
    with pytest.raises(otp_service.AccountNotFound):
        await otp_service.request_login_otp(db, mailer, email="ghost@x.com", ttl=TTL)


async def test_login_otp_requires_verified_account(db: AsyncSession, mailer, settings):
    await _register(db, mailer)
    with pytest.raises(otp_service.NotVerified):
        await otp_service.request_login_otp(db, mailer, email="a@x.com", ttl=TTL)
    with pytest.raises(otp_service.NotVerified):
        await otp_service.verify_login_otp(db, settings, email="a@x.com", code="123456")


async def test_login_round_trip(db: AsyncSession, mailer, settings, fixed_otp):
    account = await mk_account(db, "b@x.com", "B")

    await otp_service.request_login_otp(db, mailer, email="b@x.com", ttl=TTL)
    assert mailer.sent[-1].subject == "Your login OTP - NoteWallet"

    # same trimming policy as registration
    token = await otp_service.verify_login_otp(db, settings, email="b@x.com", code=f" {fixed_otp}\n")
    assert verify_token(token, settings) == account.id

    refreshed = await accounts_repo.get_by_email(db, "b@x.com")
    assert refreshed.status == AccountStatus.VERIFIED.value
    assert refreshed.otp_code is None

    # code is single-use
    with pytest.raises(otp_service.InvalidCode):
        await otp_service.verify_login_otp(db, settings, email="b@x.com", code=fixed_otp)


async def test_login_without_pending_code_is_invalid(db: AsyncSession, settings):
    await mk_account(db, "c@x.com", "C")
    with pytest.raises(otp_service.InvalidCode):
        await otp_service.verify_login_otp(db, settings, email="c@x.com", code="000000")


async def test_login_code_expires(db: AsyncSession, mailer, settings, fixed_otp, monkeypatch):
    await mk_account(db, "d@x.com", "D")
    await otp_service.request_login_otp(db, mailer, email="d@x.com", ttl=TTL)

    later = datetime.now(timezone.utc) + TTL + timedelta(minutes=1)
    monkeypatch.setattr(otp_service, "_now_utc", lambda: later)

    with pytest.raises(otp_service.Expired):
        await otp_service.verify_login_otp(db, settings, email="d@x.com", code=fixed_otp)
