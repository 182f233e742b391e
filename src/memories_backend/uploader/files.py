from __future__ import annotations

import mimetypes
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from starlette.concurrency import run_in_threadpool

DEFAULT_CHUNK_SIZE = 256 * 1024


@dataclass(frozen=True)
class FileHandle:
    """Raw bytes plus the metadata the browser would expose for a picked file."""

    name: str
    size: int
    mime_type: str
    path: Path | None = None
    data: bytes | None = None

    @classmethod
    def from_path(cls, path: str | Path, *, mime_type: str | None = None) -> "FileHandle":
        p = Path(path)
        guessed, _ = mimetypes.guess_type(p.name)
        return cls(
            name=p.name,
            size=p.stat().st_size,
            mime_type=mime_type if mime_type is not None else (guessed or ""),
            path=p,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, *, mime_type: str = "") -> "FileHandle":
        return cls(name=name, size=len(data), mime_type=mime_type, data=data)

    async def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
        if self.data is not None:
            for start in range(0, len(self.data), chunk_size):
                yield self.data[start : start + chunk_size]
            return

        if self.path is None:
            raise ValueError(f"file handle {self.name!r} has no content")

        fh = await run_in_threadpool(self.path.open, "rb")
        try:
            while True:
                chunk = await run_in_threadpool(fh.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await run_in_threadpool(fh.close)
