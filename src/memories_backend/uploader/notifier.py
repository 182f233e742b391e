from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    pass


class NotificationRelay:
    """Best-effort "new memories" email trigger.

    `notify` starts a detached task and returns immediately; the outcome is
    only ever logged. `aclose` waits for in-flight requests so a short-lived
    process does not cancel them on exit.
    """

    def __init__(
        self,
        *,
        endpoint: str | None,
        timeout_seconds: float | None = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._endpoint = (endpoint or "").strip()
        self._timeout = timeout_seconds
        self._client = client
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._endpoint)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self._endpoint, json=payload)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._endpoint, json=payload)

    async def _send(self, payload: dict[str, Any]) -> None:
        resp = await self._post(payload)
        if not 200 <= resp.status_code < 300:
            raise NotificationError(f"notification failed. {resp.status_code} {resp.text}")

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("notification cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("notification failed: %s", exc)
        else:
            logger.info("notification sent")

    def notify(
        self,
        *,
        full_name: str,
        message: str,
        file_names: Sequence[str],
    ) -> asyncio.Task[None] | None:
        if not self.enabled:
            logger.debug("notification endpoint not configured; skipping")
            return None

        payload: dict[str, Any] = {
            "fullName": full_name,
            "message": message,
            "fileCount": len(file_names),
            "fileNames": list(file_names),
        }
        task = asyncio.get_running_loop().create_task(self._send(payload))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def aclose(self) -> None:
        if not self._pending:
            return
        _ = await asyncio.gather(*list(self._pending), return_exceptions=True)
