from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

_DEFAULT_MEDIA_TYPES = ",".join(
    [
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/webm",
        "audio/ogg",
        "audio/flac",
        "audio/m4a",
        "audio/mp4",
        "audio/x-m4a",
        "video/mp4",
        "video/webm",
        "video/ogg",
        "video/avi",
        "video/mov",
        "video/quicktime",
    ]
)


def _split_csv(value: str) -> List[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Upload constraints. The default ceiling mirrors the hosting platform's
    # object-size limit for the primary store.
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(2 * 1024 * 1024 * 1024)))
    allowed_media_types: List[str] = field(
        default_factory=lambda: _split_csv(os.getenv("ALLOWED_MEDIA_TYPES", _DEFAULT_MEDIA_TYPES))
    )

    # Primary object store: "memory" (default) or "supabase".
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory")
    supabase_url: Optional[str] = os.getenv("SUPABASE_URL")
    supabase_service_role_key: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    media_bucket: str = os.getenv("MEDIA_BUCKET", "media-files")
    # Signed URLs are generated per operation and never cached.
    signed_url_ttl_seconds: int = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))

    # Speech recognition backend: "demo" (default) or "google".
    speech_backend: str = os.getenv("SPEECH_BACKEND", "demo")
    google_cloud_project_id: Optional[str] = os.getenv("GOOGLE_CLOUD_PROJECT_ID")
    google_cloud_service_account_json: Optional[str] = os.getenv("GOOGLE_CLOUD_SERVICE_ACCOUNT_JSON")
    # Staging bucket readable by the speech engine. Falls back to
    # "<project>-temp-transcription" when unset.
    transcription_bucket: Optional[str] = os.getenv("TRANSCRIPTION_BUCKET")

    # Upper bound for waiting on the long-running recognition operation.
    transcription_timeout_seconds: float = float(os.getenv("TRANSCRIPTION_TIMEOUT_SECONDS", "1800"))
    # Timeout for downloading/uploading media while staging.
    transfer_timeout_seconds: float = float(os.getenv("TRANSFER_TIMEOUT_SECONDS", "600"))

    # Days after transcript completion before the source binary is purged.
    retention_days: int = int(os.getenv("RETENTION_DAYS", "30"))

    # Acceptance thresholds for the multi-variant transcription strategy.
    variant_min_confidence: float = float(os.getenv("VARIANT_MIN_CONFIDENCE", "0.6"))
    variant_min_chars: int = int(os.getenv("VARIANT_MIN_CHARS", "20"))

    # Optional database configuration for SQL-backed repositories.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Basic API authentication configuration.
    # When ENABLE_API_AUTH=true, protected endpoints require a valid API key.
    enable_api_auth: bool = os.getenv("ENABLE_API_AUTH", "false").lower() == "true"
    # Comma-separated list of allowed API keys when auth is enabled.
    api_keys: Optional[str] = os.getenv("API_KEYS")

    # CORS configuration: comma-separated origins. "*" is fine for local
    # development but should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "false").lower() == "true"

    @property
    def staging_bucket_name(self) -> Optional[str]:
        if self.transcription_bucket:
            return self.transcription_bucket
        if self.google_cloud_project_id:
            return f"{self.google_cloud_project_id}-temp-transcription"
        return None


settings = Settings()
