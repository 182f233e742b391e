from __future__ import annotations

from dataclasses import dataclass

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from .upload_target import UploadTargetError, build_object_name


@dataclass(frozen=True)
class S3Config:
    endpoint_url: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    force_path_style: bool
    expires_seconds: int


class S3UploadTargets:
    """Issues presigned PUT URLs; the uploader sends bytes straight to the bucket."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        force_path_style: bool,
        expires_seconds: int = 3600,
    ) -> None:
        self._cfg = S3Config(
            endpoint_url=endpoint_url,
            region=region,
            bucket=bucket,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            force_path_style=force_path_style,
            expires_seconds=expires_seconds,
        )

        import boto3

        addressing_style = "path" if force_path_style else "virtual"
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(s3={"addressing_style": addressing_style}, signature_version="s3v4"),
        )

    async def create_upload_target(
        self,
        *,
        name: str,
        mime_type: str,
        description: str,
        origin: str | None = None,
    ) -> str:
        # The bucket has no description field; CORS is configured on the bucket.
        _ = description, origin
        key = build_object_name(name)

        def _presign() -> str:
            params: dict[str, object] = {"Bucket": self._cfg.bucket, "Key": key}
            if mime_type:
                # Signed, so the PUT must carry the same Content-Type.
                params["ContentType"] = mime_type
            return self._client.generate_presigned_url(
                "put_object",
                Params=params,
                ExpiresIn=self._cfg.expires_seconds,
                HttpMethod="PUT",
            )

        try:
            return await run_in_threadpool(_presign)
        except (BotoCoreError, ClientError) as e:
            raise UploadTargetError(f"presign failed: {e}") from e
