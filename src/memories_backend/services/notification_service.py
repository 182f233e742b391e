from __future__ import annotations

import logging
from email.headerregistry import Address
from email.message import EmailMessage
from pathlib import Path

from fastapi.templating import Jinja2Templates

from memories_backend.config import settings
from memories_backend.integrations.mail.smtp_mailer import Mailer, SMTPMailer
from memories_backend.schemas import NotificationRequest

logger = logging.getLogger(__name__)

_BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(_BASE_DIR / "templates"))


class EmailNotConfiguredError(RuntimeError):
    pass


def file_count_label(count: int) -> str:
    suffix = "" if count == 1 else "s"
    return f"{count} archivo{suffix} subido{suffix}"


def render_notification_html(payload: NotificationRequest) -> str:
    template = templates.get_template("notification_email.html")
    return template.render(
        couple_names=settings.couple_names,
        full_name=payload.full_name,
        message=payload.message.strip(),
        file_count_label=file_count_label(payload.file_count),
        file_names=payload.file_names,
        drive_link=settings.drive_folder_url(),
    )


def build_notification_email(payload: NotificationRequest) -> EmailMessage:
    if not settings.email_configured():
        raise EmailNotConfiguredError("Server email configuration missing")

    msg = EmailMessage()
    msg["Subject"] = f"📸 Nuevo recuerdo de {payload.full_name}"
    msg["From"] = Address(display_name=f"{settings.couple_names} 💍", addr_spec=settings.email_user.strip())
    msg["To"] = settings.email_destination.strip()
    msg.set_content(
        f"{payload.full_name} ha compartido recuerdos de la boda.\n"
        f"{file_count_label(payload.file_count)}\n"
        f"{settings.drive_folder_url()}\n"
    )
    msg.add_alternative(render_notification_html(payload), subtype="html")
    return msg


def get_mailer() -> Mailer:
    return SMTPMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.email_user,
        password=settings.email_pass,
        timeout_seconds=settings.smtp_timeout_seconds,
    )


async def send_notification(*, mailer: Mailer, payload: NotificationRequest) -> None:
    message = build_notification_email(payload)
    logger.info(
        "sending notification email sender=%s file_count=%s",
        payload.full_name,
        payload.file_count,
    )
    await mailer.send(message)
