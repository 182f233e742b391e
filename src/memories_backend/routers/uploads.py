"""Upload-target issuance and the local development upload sink."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from memories_backend.config import settings
from memories_backend.integrations.storage.local_storage import (
    LocalUploadStore,
    verify_upload_signature,
)
from memories_backend.integrations.storage.upload_target import (
    UploadTargetError,
    UploadTargetProvider,
    get_upload_target_provider,
)
from memories_backend.schemas import (
    StoredUploadResponse,
    UploadTargetRequest,
    UploadTargetResponse,
)

router = APIRouter()

logger = logging.getLogger(__name__)


def get_local_upload_store() -> LocalUploadStore:
    return LocalUploadStore(root_dir=settings.uploads_local_dir)


async def _read_request_body_limited(*, request: Request, max_bytes: int) -> bytes:
    # Hard-stop once size exceeds max_bytes instead of buffering the whole body.
    buf = bytearray()
    async for chunk in request.stream():
        buf.extend(chunk)
        if max_bytes > 0 and len(buf) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail="El archivo supera el tamaño máximo permitido.",
            )
    return bytes(buf)


@router.post("/upload", response_model=UploadTargetResponse)
async def create_upload_target(
    payload: UploadTargetRequest,
    request: Request,
    provider: UploadTargetProvider = Depends(get_upload_target_provider),
) -> UploadTargetResponse:
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Falta el nombre del archivo")

    try:
        upload_url = await provider.create_upload_target(
            name=name,
            mime_type=payload.mime_type.strip(),
            description=(payload.description or "").strip(),
            origin=request.headers.get("origin"),
        )
    except UploadTargetError as e:
        logger.warning(
            "upload target failed request_id=%s name=%s: %s",
            getattr(request.state, "request_id", None),
            name,
            e,
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    logger.info("upload target issued name=%s mime_type=%s", name, payload.mime_type)
    return UploadTargetResponse(upload_url=upload_url)


@router.put(
    "/uploads/{key}",
    response_model=StoredUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def receive_local_upload(
    key: str,
    request: Request,
    expires: int = Query(...),
    signature: str = Query(..., min_length=1),
    store: LocalUploadStore = Depends(get_local_upload_store),
) -> StoredUploadResponse:
    if not verify_upload_signature(
        key=key,
        expires_at=expires,
        signature=signature,
        secret=settings.upload_token_secret,
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="El enlace de subida no es válido o expiró.",
        )

    data = await _read_request_body_limited(
        request=request, max_bytes=int(settings.uploads_max_size_bytes)
    )
    try:
        await store.put_bytes(key, data)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    logger.info("stored local upload key=%s size_bytes=%s", key, len(data))
    return StoredUploadResponse(key=key, size_bytes=len(data))
