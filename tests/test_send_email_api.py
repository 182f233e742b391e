from __future__ import annotations

from email.message import EmailMessage

import httpx
import pytest

from memories_backend.config import settings
from memories_backend.integrations.mail.smtp_mailer import MailDeliveryError
from memories_backend.main import app
from memories_backend.schemas import NotificationRequest
from memories_backend.services.notification_service import (
    build_notification_email,
    file_count_label,
    get_mailer,
)


class _FakeMailer:
    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[EmailMessage] = []
        self._fail = fail

    async def send(self, message: EmailMessage) -> None:
        if self._fail:
            raise MailDeliveryError("535 authentication failed")
        self.sent.append(message)


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture
def email_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "email_user", "novios@example.com")
    monkeypatch.setattr(settings, "email_pass", "abcd efgh ijkl mnop")
    monkeypatch.setattr(settings, "email_destination", "hosts@example.com")
    monkeypatch.setattr(settings, "google_drive_folder_id", "folder-1")
    monkeypatch.setattr(settings, "couple_names", "Lucía y Andrés")


def _html_part(message: EmailMessage) -> str:
    part = message.get_body(preferencelist=("html",))
    assert part is not None
    return part.get_content()


@pytest.mark.anyio
async def test_send_email_renders_and_sends(email_settings: None) -> None:
    _ = email_settings
    mailer = _FakeMailer()
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        async with _make_async_client() as client:
            r = await client.post(
                "/api/send-email",
                json={
                    "fullName": "Ana",
                    "message": "Los queremos <3",
                    "fileCount": 2,
                    "fileNames": ["a.jpg", "b.mov"],
                },
            )
    finally:
        app.dependency_overrides.pop(get_mailer, None)

    assert r.status_code == 200
    assert r.json() == {"message": "Email sent successfully"}
    assert len(mailer.sent) == 1
    msg = mailer.sent[0]
    assert msg["Subject"] == "📸 Nuevo recuerdo de Ana"
    assert msg["To"] == "hosts@example.com"
    assert "novios@example.com" in msg["From"]

    html = _html_part(msg)
    assert "Lucía y Andrés" in html
    assert "2 archivos subidos" in html
    assert "a.jpg" in html and "b.mov" in html
    assert "https://drive.google.com/drive/folders/folder-1" in html
    # Guest text is escaped.
    assert "Los queremos &lt;3" in html


@pytest.mark.anyio
async def test_send_email_requires_full_name(email_settings: None) -> None:
    _ = email_settings
    app.dependency_overrides[get_mailer] = lambda: _FakeMailer()
    try:
        async with _make_async_client() as client:
            r = await client.post("/api/send-email", json={"message": "hola"})
    finally:
        app.dependency_overrides.pop(get_mailer, None)

    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"


@pytest.mark.anyio
async def test_send_email_missing_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "email_user", "")
    mailer = _FakeMailer()
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        async with _make_async_client() as client:
            r = await client.post("/api/send-email", json={"fullName": "Ana"})
    finally:
        app.dependency_overrides.pop(get_mailer, None)

    assert r.status_code == 500
    assert r.json()["message"] == "Server email configuration missing"
    assert mailer.sent == []


@pytest.mark.anyio
async def test_send_email_delivery_failure(email_settings: None) -> None:
    _ = email_settings
    app.dependency_overrides[get_mailer] = lambda: _FakeMailer(fail=True)
    try:
        async with _make_async_client() as client:
            r = await client.post("/api/send-email", json={"fullName": "Ana", "fileCount": 1})
    finally:
        app.dependency_overrides.pop(get_mailer, None)

    assert r.status_code == 502
    body = r.json()
    assert body["error"] == "upstream_error"
    assert body["message"] == "Failed to send email"
    assert body["details"] == {"error": "535 authentication failed"}


def test_file_count_label_pluralizes() -> None:
    assert file_count_label(0) == "0 archivos subidos"
    assert file_count_label(1) == "1 archivo subido"
    assert file_count_label(5) == "5 archivos subidos"


def test_email_without_message_omits_quote(email_settings: None) -> None:
    _ = email_settings
    msg = build_notification_email(NotificationRequest(full_name="Ana", file_count=1))
    html = _html_part(msg)
    assert "message-text" not in html.split("<body>", 1)[1]
    assert "1 archivo subido" in html


@pytest.mark.anyio
@pytest.mark.parametrize("full_name", ["Ana\nBcc: x@y.com", "Ana\r\nSubject: hi", "   "])
async def test_send_email_rejects_header_breaking_names(email_settings: None, full_name: str) -> None:
    _ = email_settings
    mailer = _FakeMailer()
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        async with _make_async_client() as client:
            r = await client.post("/api/send-email", json={"fullName": full_name})
    finally:
        app.dependency_overrides.pop(get_mailer, None)

    assert r.status_code == 422
    assert r.json()["error"] == "validation_error"
    assert mailer.sent == []


def test_notification_name_whitespace_is_collapsed(email_settings: None) -> None:
    _ = email_settings
    msg = build_notification_email(NotificationRequest(full_name="  Ana\tMaría  ", file_count=0))
    assert msg["Subject"] == "📸 Nuevo recuerdo de Ana María"
