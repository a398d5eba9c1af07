from __future__ import annotations
import logging
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings
from ...db import get_db
from ...repos import accounts as accounts_repo
from ...auth.deps import get_app_settings, get_current_account_id
from ...services import otp as otp_service
from ...services.mailer import Mailer, MailDeliveryError
from ...services.rate_limit import limit_otp_request, limit_otp_verify
from ..schemas import LoginOtpIn, MeOut, MessageOut, RegisterOtpIn, TokenOut, VerifyOtpIn

router = APIRouter(tags=["auth"])
log = logging.getLogger(__name__)


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def _server_error() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server error")


# ---------- Registration ----------
@router.post(
    "/register/send-otp",
    response_model=MessageOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_otp_request)],
)
async def register_send_otp(
    payload: RegisterOtpIn,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_app_settings),
):
    try:
        await otp_service.request_registration_otp(
            db,
            mailer,
            name=payload.name,
            dob=payload.dob,
            email=str(payload.email),
            ttl=timedelta(minutes=settings.OTP_TTL_MINUTES),
        )
    except otp_service.AlreadyRegistered:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")
    except MailDeliveryError:
        log.exception("Error in /register/send-otp")
        raise _server_error()
    return MessageOut(message="OTP sent to email")


@router.post("/register/verify-otp", response_model=TokenOut, dependencies=[Depends(limit_otp_verify)])
async def register_verify_otp(
    payload: VerifyOtpIn,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    try:
        token = await otp_service.verify_registration_otp(db, settings, email=str(payload.email), code=payload.otp)
    except otp_service.AccountNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No user found")
    except otp_service.AlreadyVerified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already verified")
    except otp_service.InvalidCode:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")
    except otp_service.Expired:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="OTP expired")
    return TokenOut(message="Account created successfully!", token=token)


# ---------- Login ----------
@router.post("/login/send-otp", response_model=MessageOut, dependencies=[Depends(limit_otp_request)])
async def login_send_otp(
    payload: LoginOtpIn,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    settings: Settings = Depends(get_app_settings),
):
    try:
        await otp_service.request_login_otp(
            db,
            mailer,
            email=str(payload.email),
            ttl=timedelta(minutes=settings.OTP_TTL_MINUTES),
        )
    except otp_service.AccountNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except otp_service.NotVerified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Registration incomplete: verify your email to activate your account.",
        )
    except MailDeliveryError:
        log.exception("Error in /login/send-otp")
        raise _server_error()
    return MessageOut(message="OTP sent to your email")


@router.post("/login/verify-otp", response_model=TokenOut, dependencies=[Depends(limit_otp_verify)])
async def login_verify_otp(
    payload: VerifyOtpIn,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    try:
        token = await otp_service.verify_login_otp(db, settings, email=str(payload.email), code=payload.otp)
    except otp_service.AccountNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except otp_service.NotVerified:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Please verify your email first")
    except (otp_service.InvalidCode, otp_service.Expired):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired OTP")
    return TokenOut(message="Login successful", token=token)


# ---------- Identity ----------
@router.get("/me", response_model=MeOut)
async def me(
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
) -> MeOut:
    account = await accounts_repo.get_by_id(db, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return MeOut(name=account.name, email=account.email)
