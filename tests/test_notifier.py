from __future__ import annotations

import json
import logging

import httpx
import pytest

from memories_backend.uploader.notifier import NotificationRelay


@pytest.mark.anyio
async def test_notify_posts_payload_in_background() -> None:
    received: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(200, json={"message": "Email sent successfully"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        relay = NotificationRelay(endpoint="https://app.test/api/send-email", client=client)
        task = relay.notify(full_name="Ana", message="", file_names=["a.jpg", "b.mov"])
        assert task is not None
        assert relay.pending == 1
        await relay.aclose()

    assert relay.pending == 0
    assert received == [
        {"fullName": "Ana", "message": "", "fileCount": 2, "fileNames": ["a.jpg", "b.mov"]}
    ]


@pytest.mark.anyio
async def test_notify_failure_is_only_logged(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(502, json={"error": "upstream_error"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        relay = NotificationRelay(endpoint="https://app.test/api/send-email", client=client)
        with caplog.at_level(logging.WARNING, logger="memories_backend.uploader.notifier"):
            _ = relay.notify(full_name="Ana", message="", file_names=[])
            await relay.aclose()

    assert any("notification failed" in r.getMessage() for r in caplog.records)


@pytest.mark.anyio
async def test_notify_transport_error_is_only_logged(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        relay = NotificationRelay(endpoint="https://app.test/api/send-email", client=client)
        with caplog.at_level(logging.WARNING, logger="memories_backend.uploader.notifier"):
            _ = relay.notify(full_name="Ana", message="", file_names=[])
            await relay.aclose()

    assert any("refused" in r.getMessage() for r in caplog.records)


@pytest.mark.anyio
async def test_notify_disabled_without_endpoint() -> None:
    relay = NotificationRelay(endpoint=None)
    assert not relay.enabled
    assert relay.notify(full_name="Ana", message="", file_names=[]) is None
    await relay.aclose()
