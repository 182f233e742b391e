from __future__ import annotations

import hashlib
import hmac
from pathlib import Path, PurePosixPath
from urllib.parse import quote, urlencode

from starlette.concurrency import run_in_threadpool

from memories_backend.time_utils import now_s

from .upload_target import UploadTargetError, build_object_name


def _safe_join(root: Path, key: str) -> Path:
    parts = [p for p in PurePosixPath(key).parts if p not in {"/", ""}]
    if not parts or any(p in {"..", "."} for p in parts):
        raise ValueError("invalid storage key")
    return root.joinpath(*parts)


def sign_upload_key(*, key: str, expires_at: int, secret: str) -> str:
    if not secret.strip():
        raise UploadTargetError("upload token secret not configured")
    msg = f"{key}:{expires_at}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def verify_upload_signature(
    *,
    key: str,
    expires_at: int,
    signature: str,
    secret: str,
    now: int | None = None,
) -> bool:
    current = now_s() if now is None else now
    if expires_at < current:
        return False
    try:
        expected = sign_upload_key(key=key, expires_at=expires_at, secret=secret)
    except UploadTargetError:
        return False
    return hmac.compare_digest(expected, signature)


class LocalUploadTargets:
    """Development stand-in for a cloud provider.

    Issues signed URLs pointing at this service's own `PUT /uploads/{key}`.
    """

    def __init__(
        self,
        *,
        public_base_url: str,
        api_prefix: str,
        secret: str,
        max_age_seconds: int,
    ) -> None:
        self._base = public_base_url.rstrip("/") + "/" + api_prefix.strip("/")
        self._secret = secret
        self._max_age = max_age_seconds

    async def create_upload_target(
        self,
        *,
        name: str,
        mime_type: str,
        description: str,
        origin: str | None = None,
    ) -> str:
        _ = mime_type, description, origin
        key = build_object_name(name)
        expires_at = now_s() + int(self._max_age)
        signature = sign_upload_key(key=key, expires_at=expires_at, secret=self._secret)
        query = urlencode({"expires": expires_at, "signature": signature})
        return f"{self._base}/uploads/{quote(key, safe='')}?{query}"


class LocalUploadStore:
    def __init__(self, *, root_dir: str) -> None:
        self._root = Path(root_dir)

    def resolve_path(self, key: str) -> Path:
        return _safe_join(self._root, key)

    async def put_bytes(self, key: str, data: bytes) -> None:
        path = self.resolve_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")

        def _write() -> None:
            _ = tmp_path.write_bytes(data)
            _ = tmp_path.replace(path)

        await run_in_threadpool(_write)
