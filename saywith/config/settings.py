"""
SayWith manager configuration.

Every value comes from the environment (or a .env file) through
pydantic-settings, so a bad type fails at startup instead of mid-request.
Snowflake and R2 each have a mock mode that keeps everything in memory;
with both on, the manager runs with no credentials at all.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TEMPLATES_FILE = Path(__file__).parent / "templates.json"


class Settings(BaseSettings):
    """Manager settings. Field names map to upper-case environment variables."""

    # API
    api_title: str = "SayWith Manager API"
    api_version: str = "v1"
    access_pin: str = Field(
        default="0000",
        description="Shared PIN for the lock screen, sent as X-Access-Pin on every message call."
    )

    # Sharing
    base_url: str = Field(
        default="https://saywith.com/",
        description="Public base URL. The share link for a message is base_url + message id."
    )
    qr_codes_enabled: bool = Field(
        default=True,
        description="Render QR codes for the share link after a message is created."
    )
    templates_file: str = Field(
        default=str(DEFAULT_TEMPLATES_FILE),
        description="JSON template catalog: a list of {value, label} objects."
    )

    # Message store (Snowflake)
    snowflake_account: str = ""
    snowflake_user: str = ""
    snowflake_password: str = ""
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="PEM private key for key-pair auth. Takes precedence over the password."
    )
    snowflake_database: str = "SAYWITH"
    snowflake_schema: str = "CONTENT"
    snowflake_warehouse: str = "COMPUTE_WH"
    snowflake_role: Optional[str] = None
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Keep message records in process memory. Lost on restart."
    )
    message_collection: str = Field(
        default="Saywith",
        description="Collection name message records are filed under."
    )

    # Blob uploads
    storage_provider: Literal["managed", "custom"] = Field(
        default="managed",
        description="managed: R2 bucket. custom: the multipart upload endpoint."
    )
    custom_upload_url: str = "https://giit-upload.onrender.com/upload"
    custom_upload_timeout_seconds: int = 120

    # Managed storage (Cloudflare R2)
    r2_account_id: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = "saywith-messages"
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="Explicit S3 endpoint. Derived from r2_account_id when unset."
    )
    r2_public_url: Optional[str] = Field(
        default=None,
        description="Public bucket URL (r2.dev or custom domain). Presigned URLs are used when unset."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Keep uploaded files in process memory and return mock:// URLs."
    )

    max_upload_size_mb: int = Field(
        default=100,
        description="Largest accepted media, audio or subtitle file."
    )

    log_level: str = "INFO"
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:9002",
        description="Comma-separated origins allowed to call the API, or *."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def r2_endpoint(self) -> str:
        """S3 endpoint for the R2 account."""
        return self.r2_endpoint_url or f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    def share_url(self, message_id: str) -> str:
        """Public URL for a message: base URL with the id appended."""
        return f"{self.base_url}{message_id}"

    def validate_required_fields(self) -> list[str]:
        """
        Environment variables still needed for the configured backends.

        Mock modes and the storage provider decide what is required, which
        is why this lives outside field validation. Empty means ready.
        """
        missing = []

        if not self.access_pin:
            missing.append("ACCESS_PIN")

        if not self.snowflake_mock_mode:
            for name in ("snowflake_account", "snowflake_user"):
                if not getattr(self, name):
                    missing.append(name.upper())
            if not (self.snowflake_password or self.snowflake_private_key_path):
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        if self.storage_provider == "custom":
            if not self.custom_upload_url:
                missing.append("CUSTOM_UPLOAD_URL")
        elif not self.r2_mock_mode:
            if not (self.r2_account_id or self.r2_endpoint_url):
                missing.append("R2_ACCOUNT_ID")
            for name in ("r2_access_key_id", "r2_secret_access_key"):
                if not getattr(self, name):
                    missing.append(name.upper())

        return missing


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings. Tests reset with get_settings.cache_clear()."""
    return Settings()
