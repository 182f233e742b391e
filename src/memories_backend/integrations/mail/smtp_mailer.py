from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


class MailDeliveryError(RuntimeError):
    pass


class Mailer(Protocol):
    async def send(self, message: EmailMessage) -> None: ...


@dataclass(frozen=True)
class SMTPConfig:
    host: str
    port: int
    username: str
    password: str
    timeout_seconds: float


class SMTPMailer:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str,
        password: str,
        timeout_seconds: float,
    ) -> None:
        self._cfg = SMTPConfig(
            host=host,
            port=port,
            username=username.strip(),
            # Gmail app passwords are shown in groups of four; the spaces are not part of it.
            password=_WHITESPACE_RE.sub("", password),
            timeout_seconds=timeout_seconds,
        )

    async def send(self, message: EmailMessage) -> None:
        # 465 is implicit TLS; anything else upgrades with STARTTLS.
        implicit_tls = self._cfg.port == 465
        try:
            await aiosmtplib.send(
                message,
                hostname=self._cfg.host,
                port=self._cfg.port,
                username=self._cfg.username or None,
                password=self._cfg.password or None,
                use_tls=implicit_tls,
                start_tls=not implicit_tls,
                timeout=self._cfg.timeout_seconds,
            )
        except aiosmtplib.SMTPException as e:
            logger.warning("smtp send failed host=%s port=%s: %s", self._cfg.host, self._cfg.port, e)
            raise MailDeliveryError(str(e)) from e
        except OSError as e:
            logger.warning("smtp connection failed host=%s port=%s: %s", self._cfg.host, self._cfg.port, e)
            raise MailDeliveryError(str(e)) from e
