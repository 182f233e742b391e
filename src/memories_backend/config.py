from __future__ import annotations

from typing import ClassVar, final

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_CORS_ALLOW_ORIGINS_VALIDATION_ALIAS = AliasChoices("CORS_ALLOW_ORIGINS", "CORS_ORIGINS")
_UPLOAD_TOKEN_SECRET_PLACEHOLDER = "upload_token_secret_change_me"


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Wedding Memories"
    api_prefix: str = "/api"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"
    log_level: str = "INFO"

    # Primary env: CORS_ALLOW_ORIGINS; also accept CORS_ORIGINS as alias.
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=_CORS_ALLOW_ORIGINS_VALIDATION_ALIAS,
    )

    # Used to build upload URLs served by this process (local provider).
    public_base_url: str = "http://localhost:8000"

    # Google Drive (resumable uploads)
    google_client_id: str = ""
    google_client_secret: str = ""
    google_refresh_token: str = ""
    google_drive_folder_id: str = ""
    google_request_timeout_seconds: float = 15.0

    # S3 / S3-compatible (presigned PUT)
    s3_endpoint_url: str = ""
    s3_region: str = ""
    s3_bucket: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_force_path_style: bool = False
    s3_presign_expires_seconds: int = 60 * 60

    # Local uploads (development fallback when no cloud provider is configured)
    uploads_local_dir: str = ".data/uploads"
    uploads_max_size_bytes: int = 500 * 1024 * 1024
    upload_token_secret: str = _UPLOAD_TOKEN_SECRET_PLACEHOLDER
    upload_token_max_age_seconds: int = 60 * 60

    # SMTP notification
    email_user: str = ""
    email_pass: str = ""
    email_destination: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_timeout_seconds: float = 30.0

    couple_names: str = "Lucía y Andrés"

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        if self.environment.strip().lower() != "production":
            return self

        errors: list[str] = []

        cors_v = self.cors_allow_origins.strip()
        if not cors_v or cors_v == "*":
            errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        # A partially configured provider would silently fall back to local storage.
        google_fields = {
            "GOOGLE_CLIENT_ID": self.google_client_id.strip(),
            "GOOGLE_CLIENT_SECRET": self.google_client_secret.strip(),
            "GOOGLE_REFRESH_TOKEN": self.google_refresh_token.strip(),
            "GOOGLE_DRIVE_FOLDER_ID": self.google_drive_folder_id.strip(),
        }
        if any(google_fields.values()) and not all(google_fields.values()):
            missing = ",".join([k for k, v in google_fields.items() if not v])
            errors.append(f"Google Drive config incomplete in production; missing: {missing}")

        s3_fields = {
            "S3_BUCKET": self.s3_bucket.strip(),
            "S3_ENDPOINT_URL": self.s3_endpoint_url.strip(),
            "S3_ACCESS_KEY_ID": self.s3_access_key_id.strip(),
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key.strip(),
        }
        if any(s3_fields.values()) and not all(s3_fields.values()):
            missing = ",".join([k for k, v in s3_fields.items() if not v])
            errors.append(f"S3 config incomplete in production; missing: {missing}")

        if not self.google_configured() and not self.s3_configured():
            secret = self.upload_token_secret.strip()
            if not secret or secret == _UPLOAD_TOKEN_SECRET_PLACEHOLDER:
                errors.append("UPLOAD_TOKEN_SECRET must be set in production")

        if errors:
            raise ValueError("Invalid production settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def google_configured(self) -> bool:
        return bool(
            self.google_client_id.strip()
            and self.google_client_secret.strip()
            and self.google_refresh_token.strip()
            and self.google_drive_folder_id.strip()
        )

    def s3_configured(self) -> bool:
        return bool(
            self.s3_bucket.strip()
            and self.s3_endpoint_url.strip()
            and self.s3_access_key_id.strip()
            and self.s3_secret_access_key.strip()
        )

    def email_configured(self) -> bool:
        return bool(
            self.email_user.strip() and self.email_pass.strip() and self.email_destination.strip()
        )

    def drive_folder_url(self) -> str:
        folder_id = self.google_drive_folder_id.strip()
        if folder_id:
            return f"https://drive.google.com/drive/folders/{folder_id}"
        return "https://drive.google.com/"

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        if not self.google_configured() and not self.s3_configured():
            warnings.append("no cloud storage configured; uploads are stored on local disk")
            if self.upload_token_secret == _UPLOAD_TOKEN_SECRET_PLACEHOLDER:
                warnings.append("UPLOAD_TOKEN_SECRET is using placeholder value")
        if not self.email_configured():
            warnings.append("EMAIL_USER/EMAIL_PASS/EMAIL_DESTINATION missing; notifications disabled")
        return warnings


settings = Settings()
