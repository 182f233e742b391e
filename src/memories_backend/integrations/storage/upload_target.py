from __future__ import annotations

from typing import Protocol

from memories_backend.config import settings
from memories_backend.http_headers import sanitize_filename
from memories_backend.time_utils import now_ms


class UploadTargetError(RuntimeError):
    pass


class UploadTargetProvider(Protocol):
    async def create_upload_target(
        self,
        *,
        name: str,
        mime_type: str,
        description: str,
        origin: str | None = None,
    ) -> str: ...


DEFAULT_DESCRIPTION = "Subido desde formulario"


def build_object_name(name: str, *, now_ms_value: int | None = None) -> str:
    # Timestamp prefix keeps two guests' "IMG_0001.jpg" apart in the same folder.
    ts = now_ms() if now_ms_value is None else now_ms_value
    return f"{ts}-{sanitize_filename(name, fallback='archivo')}"


def get_upload_target_provider() -> UploadTargetProvider:
    # Default to local storage when no cloud provider is fully configured.
    if settings.google_configured():
        from .drive import GoogleDriveUploadTargets

        return GoogleDriveUploadTargets(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            refresh_token=settings.google_refresh_token,
            folder_id=settings.google_drive_folder_id,
            timeout_seconds=settings.google_request_timeout_seconds,
        )

    if settings.s3_configured():
        from .s3_storage import S3UploadTargets

        return S3UploadTargets(
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
            bucket=settings.s3_bucket,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            force_path_style=settings.s3_force_path_style,
            expires_seconds=settings.s3_presign_expires_seconds,
        )

    from .local_storage import LocalUploadTargets

    return LocalUploadTargets(
        public_base_url=settings.public_base_url,
        api_prefix=settings.api_prefix,
        secret=settings.upload_token_secret,
        max_age_seconds=settings.upload_token_max_age_seconds,
    )
