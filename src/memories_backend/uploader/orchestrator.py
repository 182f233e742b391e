"""Submission flow: one upload target per file, then a direct PUT of the bytes.

Per-file state machine: pending -> uploading -> success | error. Terminal
states are never left; there is no retry, the guest resubmits instead.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import uuid
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from memories_backend.uploader.file_queue import PendingFile
from memories_backend.uploader.files import DEFAULT_CHUNK_SIZE, FileHandle
from memories_backend.uploader.form import FormValues, validate_form
from memories_backend.uploader.notifier import NotificationRelay

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "¡Listo! Tus datos han sido enviados con éxito."
TEXT_ONLY_DESCRIPTION = "Mensaje de texto sin fotos"
NO_MESSAGE_PLACEHOLDER = "Sin mensaje"

_WHITESPACE_RE = re.compile(r"\s+")

ProgressCallback = Callable[[str, int, int], None]
StateCallback = Callable[[str, "UploadState"], None]


class UploadState(str, enum.Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (UploadState.SUCCESS, UploadState.ERROR)


_ALLOWED_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.PENDING: frozenset({UploadState.UPLOADING}),
    UploadState.UPLOADING: frozenset({UploadState.SUCCESS, UploadState.ERROR}),
    UploadState.SUCCESS: frozenset(),
    UploadState.ERROR: frozenset(),
}


class UploadFailed(RuntimeError):
    pass


@dataclass
class SubmissionState:
    """Per-submission bookkeeping. Each upload task writes only its own file id."""

    states: dict[str, UploadState] = field(default_factory=dict)
    progress: dict[str, tuple[int, int]] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)

    @classmethod
    def start(cls, files: Sequence[PendingFile]) -> "SubmissionState":
        return cls(
            states={f.id: UploadState.PENDING for f in files},
            progress={f.id: (0, f.file.size) for f in files},
            names={f.id: f.file.name for f in files},
        )

    def transition(self, file_id: str, new_state: UploadState) -> None:
        current = self.states[file_id]
        if new_state not in _ALLOWED_TRANSITIONS[current]:
            raise ValueError(f"illegal upload state transition {current.value} -> {new_state.value}")
        self.states[file_id] = new_state

    def all_succeeded(self) -> bool:
        return bool(self.states) and all(s is UploadState.SUCCESS for s in self.states.values())

    def failed_names(self) -> list[str]:
        return [self.names[fid] for fid, s in self.states.items() if s is UploadState.ERROR]


@dataclass(frozen=True)
class SubmissionResult:
    status: Literal["success", "error"]
    message: str
    state: SubmissionState
    text_only: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def failed(self) -> list[str]:
        return self.state.failed_names()


def build_description(values: FormValues) -> str:
    return f"{values.full_name} · {values.message or NO_MESSAGE_PLACEHOLDER}"


def text_attachment_name(full_name: str) -> str:
    return f"mensaje-{_WHITESPACE_RE.sub('-', full_name)}.txt"


def build_text_attachment(values: FormValues) -> PendingFile:
    content = f"Nombre: {values.full_name}\nMensaje: {values.message}"
    handle = FileHandle.from_bytes(
        text_attachment_name(values.full_name),
        content.encode("utf-8"),
        mime_type="text/plain",
    )
    return PendingFile(id=uuid.uuid4().hex, file=handle)


def failure_message(count: int) -> str:
    return f"No pudimos subir {count} archivo(s)."


class UploadOrchestrator:
    def __init__(
        self,
        *,
        upload_endpoint: str,
        notifier: NotificationRelay | None = None,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_progress: ProgressCallback | None = None,
        on_state: StateCallback | None = None,
    ) -> None:
        self._endpoint = upload_endpoint
        self._notifier = notifier
        # None disables httpx timeouts; large videos can take minutes.
        self._timeout = timeout_seconds
        self._client = client
        self._chunk_size = chunk_size
        self._on_progress = on_progress
        self._on_state = on_state

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            yield client

    def _set_state(self, state: SubmissionState, file_id: str, new_state: UploadState) -> None:
        state.transition(file_id, new_state)
        if self._on_state is not None:
            self._on_state(file_id, new_state)

    async def _request_upload_target(
        self, client: httpx.AsyncClient, file: FileHandle, *, description: str
    ) -> str:
        resp = await client.post(
            self._endpoint,
            json={"name": file.name, "mimeType": file.mime_type, "description": description},
        )
        if not 200 <= resp.status_code < 300:
            raise UploadFailed(f"Error iniciando subida para {file.name}: {resp.status_code}")
        try:
            data: Any = resp.json()
        except ValueError as e:
            raise UploadFailed(f"Respuesta inválida iniciando subida para {file.name}") from e
        upload_url = data.get("uploadUrl") if isinstance(data, dict) else None
        if not isinstance(upload_url, str) or not upload_url:
            raise UploadFailed(f"No se recibió la URL de subida para {file.name}")
        return upload_url

    async def _transfer(
        self,
        client: httpx.AsyncClient,
        entry: PendingFile,
        upload_url: str,
        state: SubmissionState,
    ) -> None:
        file = entry.file

        async def _body() -> AsyncIterator[bytes]:
            sent = 0
            async for chunk in file.iter_chunks(self._chunk_size):
                yield chunk
                sent += len(chunk)
                state.progress[entry.id] = (sent, file.size)
                if self._on_progress is not None:
                    self._on_progress(entry.id, sent, file.size)

        headers = {"Content-Length": str(file.size)}
        if file.mime_type:
            headers["Content-Type"] = file.mime_type
        resp = await client.put(upload_url, content=_body(), headers=headers)
        if not 200 <= resp.status_code < 300:
            raise UploadFailed(f"Fallo al subir {file.name}: {resp.status_code}")

    async def upload_one(
        self,
        client: httpx.AsyncClient,
        entry: PendingFile,
        *,
        description: str,
        state: SubmissionState,
    ) -> bool:
        self._set_state(state, entry.id, UploadState.UPLOADING)
        try:
            upload_url = await self._request_upload_target(client, entry.file, description=description)
            await self._transfer(client, entry, upload_url, state)
        except (UploadFailed, httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.warning("upload failed file=%s: %s", entry.file.name, e)
            self._set_state(state, entry.id, UploadState.ERROR)
            return False
        self._set_state(state, entry.id, UploadState.SUCCESS)
        return True

    async def _upload_all(
        self,
        files: Sequence[PendingFile],
        *,
        description: str,
        state: SubmissionState,
    ) -> None:
        async with self._session() as client:
            results = await asyncio.gather(
                *(self.upload_one(client, entry, description=description, state=state) for entry in files),
                return_exceptions=True,
            )

        for entry, outcome in zip(files, results):
            if not isinstance(outcome, BaseException):
                continue
            # upload_one only raises on programming errors; surface them in the log.
            logger.error("upload task crashed file=%s", entry.file.name, exc_info=outcome)
            current = state.states[entry.id]
            if current is UploadState.PENDING:
                self._set_state(state, entry.id, UploadState.UPLOADING)
                current = UploadState.UPLOADING
            if current is UploadState.UPLOADING:
                self._set_state(state, entry.id, UploadState.ERROR)

    async def submit(
        self,
        files: Sequence[PendingFile],
        form: FormValues | Mapping[str, object],
    ) -> SubmissionResult:
        """Upload every queued file concurrently; raises `FormValidationError` before any I/O."""
        values = validate_form(form)

        if not files:
            return await self._submit_text_only(values)

        state = SubmissionState.start(files)
        await self._upload_all(files, description=build_description(values), state=state)

        if not state.all_succeeded():
            failed = state.failed_names()
            logger.warning("submission failed for %s of %s file(s): %s", len(failed), len(files), failed)
            return SubmissionResult(status="error", message=failure_message(len(failed)), state=state)

        logger.info("submission uploaded %s file(s) for %s", len(files), values.full_name)
        if self._notifier is not None:
            _ = self._notifier.notify(
                full_name=values.full_name,
                message=values.message,
                file_names=[f.file.name for f in files],
            )
        return SubmissionResult(status="success", message=SUCCESS_MESSAGE, state=state)

    async def _submit_text_only(self, values: FormValues) -> SubmissionResult:
        entry = build_text_attachment(values)
        state = SubmissionState.start([entry])

        # No photos: the hosts are told right away, whatever happens to the .txt copy.
        if self._notifier is not None:
            _ = self._notifier.notify(full_name=values.full_name, message=values.message, file_names=[])

        await self._upload_all([entry], description=TEXT_ONLY_DESCRIPTION, state=state)

        if not state.all_succeeded():
            return SubmissionResult(
                status="error",
                message="No pudimos guardar tu mensaje.",
                state=state,
                text_only=True,
            )
        return SubmissionResult(status="success", message=SUCCESS_MESSAGE, state=state, text_only=True)
