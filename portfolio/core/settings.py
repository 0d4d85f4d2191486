from typing import List, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Backing store: "local", "s3" or "github"
    STORAGE_BACKEND: str = "local"
    LOCAL_STORAGE_ROOT: str = "storage"  # base directory for the local backend
    STORAGE_ROOT: str = ""  # key prefix inside the store (e.g. "public/static" for github)
    STORAGE_PREFIX: str = "portfolio"  # images live under {prefix}/{category}/
    PUBLIC_BASE_URL: str = "/static"  # public src = {base}/{key}

    # S3 / Cloudflare R2 (optional)
    S3_BUCKET: str = ""
    S3_REGION: str = "auto"
    S3_ENDPOINT_URL: str = ""  # e.g. https://<account>.r2.cloudflarestorage.com
    R2_ACCOUNT_ID: str = ""  # derives S3_ENDPOINT_URL when that is empty
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # GitHub contents API (optional)
    GITHUB_TOKEN: str = ""
    GITHUB_OWNER: str = ""
    GITHUB_REPO: str = ""
    GITHUB_BRANCH: str = "main"
    GITHUB_API_URL: str = "https://api.github.com"

    # Listing: "live" reads the store prefix, "document" keeps a listing file per category
    LISTING_STRATEGY: str = "document"
    LISTING_FORMAT: str = "json"  # "json" or "page" (legacy `const images = [...]` source)
    LISTING_ROOT: str = ""
    LISTING_PATH_TEMPLATE: str = "listings/{category}.json"
    LISTING_MAX_RETRIES: int = 3
    LISTING_RETRY_BACKOFF_SECONDS: float = 0.2

    # Upload/security
    MAX_UPLOAD_BYTES: int = 50_000_000  # 50 MB per image
    ALLOWED_UPLOAD_MIME_TYPES: Tuple[str, ...] = (
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/gif",
    )

    # Outbound HTTP (GitHub API, deploy hook) and S3 timeouts, seconds
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Rebuild hook (e.g. Cloudflare Pages deploy hook)
    DEPLOY_HOOK_URL: str = ""

    # Database for error and incident logs
    DATABASE_URL: str = "sqlite:///./portfolio.db"

    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True
    LOG_FILE: str = "logs/app.log"  # empty disables the file handler
    LOG_MAX_BYTES: int = 5_000_000  # 5 MB
    LOG_BACKUP_COUNT: int = 5

    # Sentry
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.0

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

# Basic validation for the selected backend to prevent confusing runtime errors
_missing = []
_backend = (settings.STORAGE_BACKEND or "local").lower()
if _backend == "s3":
    if not settings.S3_BUCKET:
        _missing.append("S3_BUCKET")
    if not (settings.S3_ENDPOINT_URL or settings.R2_ACCOUNT_ID or settings.S3_REGION):
        _missing.append("S3_ENDPOINT_URL")
elif _backend == "github":
    for _key in ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO"):
        if not getattr(settings, _key):
            _missing.append(_key)

if _missing:
    # Do not crash imports in some tools; instead, provide a helpful message.
    import warnings

    warnings.warn(
        f"Missing settings for STORAGE_BACKEND={_backend}: "
        + ", ".join(_missing)
        + ". Update .env and restart the app."
    )
