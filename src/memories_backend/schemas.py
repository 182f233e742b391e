from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


class HealthResponse(BaseModel):
    ok: bool = True


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Unified error body returned by every endpoint.

    Clients parse `error` (stable machine code) and show `message`; `request_id`
    matches the `X-Request-Id` response header.
    """

    error: str
    message: str
    request_id: str | None = None
    details: object | None = None


class UploadTargetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Emptiness is checked by the router so it can answer 400 instead of 422.
    name: str = Field(default="", max_length=255)
    mime_type: str = Field(default="", alias="mimeType", max_length=255)
    description: str | None = Field(default=None, max_length=2000)


class UploadTargetResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    upload_url: str = Field(alias="uploadUrl")


class NotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: str = Field(alias="fullName", min_length=1, max_length=120)
    message: str = Field(default="", max_length=400)
    file_count: int = Field(default=0, alias="fileCount", ge=0)
    file_names: list[str] = Field(default_factory=list, alias="fileNames")

    @field_validator("full_name")
    @classmethod
    def _single_line_name(cls, value: str) -> str:
        # The name ends up in the Subject header.
        if _CONTROL_CHARS_RE.search(value):
            raise ValueError("fullName must not contain control characters")
        value = " ".join(value.split())
        if not value:
            raise ValueError("fullName must not be blank")
        return value


class StoredUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    size_bytes: int = Field(alias="sizeBytes")
