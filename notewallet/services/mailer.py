from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import sib_api_v3_sdk
from sib_api_v3_sdk.rest import ApiException

from ..config import Settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """The transport refused or failed to send a message."""


@dataclass(frozen=True)
class OutgoingMail:
    to: str
    subject: str
    text: str
    html: Optional[str] = None


class Mailer(ABC):
    @abstractmethod
    async def send(self, mail: OutgoingMail) -> None:
        """Deliver one message or raise MailDeliveryError."""


class ConsoleMailer(Mailer):
    """DEV sender: logs the message instead of delivering it."""

    async def send(self, mail: OutgoingMail) -> None:
        logger.info("[DEV] mail to=%s subject=%r body=%r", mail.to, mail.subject, mail.text)


class BrevoMailer(Mailer):
    """Brevo transactional email API with async-friendly send."""

    def __init__(self, api_key: str, sender_email: str, sender_name: str) -> None:
        configuration = sib_api_v3_sdk.Configuration()
        configuration.api_key["api-key"] = api_key
        self._api = sib_api_v3_sdk.TransactionalEmailsApi(sib_api_v3_sdk.ApiClient(configuration))
        self._sender = {"name": sender_name, "email": sender_email}

    async def send(self, mail: OutgoingMail) -> None:
        message = sib_api_v3_sdk.SendSmtpEmail(
            to=[{"email": mail.to}],
            sender=self._sender,
            subject=mail.subject,
            text_content=mail.text,
            html_content=mail.html or f"<p>{mail.text}</p>",
        )
        loop = asyncio.get_running_loop()
        try:
            resp = await loop.run_in_executor(None, lambda: self._api.send_transac_email(message))
        except ApiException as exc:
            logger.error("Brevo send_transac_email failed: status=%s reason=%s", exc.status, exc.reason)
            raise MailDeliveryError(str(exc)) from exc
        logger.info("mail sent", extra={"to": mail.to, "message_id": getattr(resp, "message_id", None)})


def build_mailer(settings: Settings) -> Mailer:
    if settings.MAIL_BACKEND == "brevo":
        if not settings.BREVO_API_KEY:
            raise RuntimeError("MAIL_BACKEND=brevo requires BREVO_API_KEY")
        return BrevoMailer(settings.BREVO_API_KEY, settings.MAIL_FROM_EMAIL, settings.MAIL_FROM_NAME)
    return ConsoleMailer()


# ---- message templates ----
def registration_otp_mail(to: str, code: str, ttl_minutes: int) -> OutgoingMail:
    return OutgoingMail(
        to=to,
        subject="NoteWallet - Verify your account",
        text=f"Your OTP is {code}. It is valid for {ttl_minutes} minutes.",
        html=f"<p>Your OTP is <b>{code}</b>. It is valid for {ttl_minutes} minutes.</p>",
    )


def login_otp_mail(to: str, code: str, ttl_minutes: int) -> OutgoingMail:
    return OutgoingMail(
        to=to,
        subject="Your login OTP - NoteWallet",
        text=f"Your OTP is {code}. It is valid for {ttl_minutes} minutes.",
    )
