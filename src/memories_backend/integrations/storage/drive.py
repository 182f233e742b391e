"""Google Drive resumable-upload initiation.

The service never sees file bytes: it opens a resumable session on behalf of
the hosts' Drive account and hands the session URL back to the uploader,
which PUTs the file straight to Google.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .upload_target import DEFAULT_DESCRIPTION, UploadTargetError, build_object_name

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_RESUMABLE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files?uploadType=resumable"


class GoogleDriveUploadTargets:
    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        folder_id: str,
        timeout_seconds: float,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client_id = client_id.strip()
        self._client_secret = client_secret.strip()
        self._refresh_token = refresh_token.strip()
        self._folder_id = folder_id.strip()
        self._timeout = timeout_seconds
        self._client = client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._client is not None:
                return await self._client.request(method, url, **kwargs)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("google request failed method=%s url=%s: %s", method, url, e)
            raise UploadTargetError(f"No se pudo conectar con Google: {e}") from e

    async def _access_token(self) -> str:
        if not (self._client_id and self._client_secret and self._refresh_token and self._folder_id):
            raise UploadTargetError("Faltan variables de entorno para conectarse a Google Drive.")

        resp = await self._request(
            "POST",
            GOOGLE_TOKEN_URL,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if not 200 <= resp.status_code < 300:
            raise UploadTargetError(f"token refresh failed. {resp.status_code} {resp.text}")

        try:
            data = resp.json()
        except ValueError as e:
            raise UploadTargetError(f"token refresh returned invalid JSON: {e}") from e
        token = data.get("access_token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise UploadTargetError("No se pudo obtener el token de acceso.")
        return token

    async def create_upload_target(
        self,
        *,
        name: str,
        mime_type: str,
        description: str,
        origin: str | None = None,
    ) -> str:
        access_token = await self._access_token()

        headers = {"Authorization": f"Bearer {access_token}"}
        if mime_type:
            headers["X-Upload-Content-Type"] = mime_type
        # Google enables CORS on the session URL only for the origin that opened it.
        if origin:
            headers["Origin"] = origin

        metadata: dict[str, object] = {
            "name": build_object_name(name),
            "description": description or DEFAULT_DESCRIPTION,
            "parents": [self._folder_id],
        }
        if mime_type:
            metadata["mimeType"] = mime_type

        resp = await self._request("POST", DRIVE_RESUMABLE_UPLOAD_URL, headers=headers, json=metadata)
        if not 200 <= resp.status_code < 300:
            logger.warning("drive resumable init failed status=%s body=%s", resp.status_code, resp.text)
            raise UploadTargetError(f"Error iniciando subida: {resp.reason_phrase}")

        upload_url = resp.headers.get("Location")
        if not upload_url:
            raise UploadTargetError("No se recibió la URL de subida de Google.")
        return upload_url
