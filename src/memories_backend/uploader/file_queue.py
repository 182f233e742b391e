"""In-memory queue of files picked by a guest before submitting."""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from memories_backend.uploader.files import FileHandle
from memories_backend.uploader.previews import PreviewRegistry

logger = logging.getLogger(__name__)

ACCEPTED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/heic",
        "image/heif",
        "video/mp4",
        "video/quicktime",
    }
)
ACCEPTED_EXTENSIONS: tuple[str, ...] = (".jpg", ".jpeg", ".png", ".heic", ".heif", ".mp4", ".mov")

# iOS often reports .mov files with an empty MIME type.
_VIDEO_EXTENSIONS: tuple[str, ...] = (".mp4", ".mov", ".quicktime")


def is_accepted(
    file: FileHandle,
    *,
    mime_types: frozenset[str] = ACCEPTED_MIME_TYPES,
    extensions: tuple[str, ...] = ACCEPTED_EXTENSIONS,
) -> bool:
    return file.mime_type in mime_types or file.name.lower().endswith(extensions)


def wants_preview(file: FileHandle) -> bool:
    is_image = file.mime_type.startswith("image/")
    is_video = file.mime_type.startswith("video/") or file.name.lower().endswith(_VIDEO_EXTENSIONS)
    return is_image or is_video


def rejection_message(count: int) -> str | None:
    if count <= 0:
        return None
    return f"Ignoramos {count} archivo(s) por formato no permitido."


@dataclass(frozen=True)
class PendingFile:
    id: str
    file: FileHandle
    preview_url: str | None = None


@dataclass(frozen=True)
class AddResult:
    added: tuple[PendingFile, ...]
    rejected: int
    duplicates: int
    truncated: int

    @property
    def message(self) -> str | None:
        return rejection_message(self.rejected)


class FileQueue:
    def __init__(
        self,
        *,
        max_files: int | None = None,
        accepted_mime_types: frozenset[str] = ACCEPTED_MIME_TYPES,
        accepted_extensions: tuple[str, ...] = ACCEPTED_EXTENSIONS,
        previews: PreviewRegistry | None = None,
    ) -> None:
        if max_files is not None and max_files < 0:
            raise ValueError("max_files must be >= 0")
        self._max_files = max_files
        self._mime_types = accepted_mime_types
        self._extensions = tuple(e.lower() for e in accepted_extensions)
        self._previews = previews if previews is not None else PreviewRegistry()
        self._entries: list[PendingFile] = []
        self._closed = False
        self.last_rejection: str | None = None

    @property
    def files(self) -> tuple[PendingFile, ...]:
        return tuple(self._entries)

    @property
    def previews(self) -> PreviewRegistry:
        return self._previews

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingFile]:
        return iter(tuple(self._entries))

    def remaining_slots(self) -> int | float:
        if self._max_files is None:
            return math.inf
        return max(0, self._max_files - len(self._entries))

    def add(self, candidates: Iterable[FileHandle]) -> AddResult:
        if self._closed:
            raise RuntimeError("file queue is closed")

        allowed: list[FileHandle] = []
        rejected = 0
        for candidate in candidates:
            if is_accepted(candidate, mime_types=self._mime_types, extensions=self._extensions):
                allowed.append(candidate)
            else:
                rejected += 1
        self.last_rejection = rejection_message(rejected)

        seen = {(e.file.name, e.file.size) for e in self._entries}
        unique: list[FileHandle] = []
        for candidate in allowed:
            identity = (candidate.name, candidate.size)
            if identity in seen:
                continue
            seen.add(identity)
            unique.append(candidate)
        duplicates = len(allowed) - len(unique)

        slots = self.remaining_slots()
        accepted = unique if slots == math.inf else unique[: int(slots)]
        truncated = len(unique) - len(accepted)

        additions: list[PendingFile] = []
        for file in accepted:
            preview_url = self._previews.acquire(file) if wants_preview(file) else None
            additions.append(PendingFile(id=uuid.uuid4().hex, file=file, preview_url=preview_url))
        self._entries.extend(additions)

        if rejected or duplicates or truncated:
            logger.info(
                "file queue add: added=%s rejected=%s duplicates=%s truncated=%s",
                len(additions),
                rejected,
                duplicates,
                truncated,
            )
        return AddResult(
            added=tuple(additions),
            rejected=rejected,
            duplicates=duplicates,
            truncated=truncated,
        )

    def remove(self, file_id: str) -> bool:
        for index, entry in enumerate(self._entries):
            if entry.id == file_id:
                del self._entries[index]
                if entry.preview_url:
                    _ = self._previews.release(entry.preview_url)
                return True
        return False

    def clear(self) -> None:
        entries, self._entries = self._entries, []
        for entry in entries:
            if entry.preview_url:
                _ = self._previews.release(entry.preview_url)

    def close(self) -> None:
        if self._closed:
            return
        self.clear()
        self._closed = True
        # Preview references must not outlive the queue.
        leaked = self._previews.close()
        if leaked:
            logger.warning("released %s orphaned preview reference(s) on close", leaked)

    def __enter__(self) -> "FileQueue":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
