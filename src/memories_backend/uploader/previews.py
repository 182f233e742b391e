from __future__ import annotations

import logging
import uuid

from memories_backend.uploader.files import FileHandle

logger = logging.getLogger(__name__)


class PreviewRegistry:
    """Owns short-lived preview references handed out for queued files.

    A reference is valid from `acquire` until its single `release`; `close`
    releases whatever is still outstanding.
    """

    def __init__(self, *, scheme: str = "blob:memories") -> None:
        self._scheme = scheme
        self._live: dict[str, FileHandle] = {}
        self._released_count = 0

    def acquire(self, file: FileHandle) -> str:
        url = f"{self._scheme}/{uuid.uuid4().hex}"
        self._live[url] = file
        return url

    def release(self, url: str) -> bool:
        if self._live.pop(url, None) is None:
            logger.warning("preview reference released twice or never acquired: %s", url)
            return False
        self._released_count += 1
        return True

    def resolve(self, url: str) -> FileHandle | None:
        return self._live.get(url)

    def outstanding(self) -> list[str]:
        return list(self._live)

    @property
    def released_count(self) -> int:
        return self._released_count

    def close(self) -> int:
        urls = self.outstanding()
        for url in urls:
            _ = self.release(url)
        return len(urls)
