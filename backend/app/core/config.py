"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings exposed via dependency injection throughout the app."""

    # Read .env with BOM tolerance; case-sensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=True,
    )

    APP_NAME: str = "Portfolio API"
    ENV: str = "dev"  # dev | staging | prod
    DEBUG: bool = False

    # JWT
    JWT_SECRET: str  # set via env/.env
    REFRESH_TOKEN_SECRET: str  # set via env/.env
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    JWT_ISSUER: str = "portfolio-api"
    JWT_AUDIENCE: str = "portfolio-clients"

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # Cookies
    COOKIE_DOMAIN: str | None = None
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "lax"  # lax/strict/none
    ACCESS_COOKIE_NAME: str = "accessToken"
    REFRESH_COOKIE_NAME: str = "refreshToken"

    # DB
    DB_URL: str | None = None  # overrides the DB_* parts below when set
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "portfolio"
    DB_PASSWORD: str = ""  # set via env/.env
    DB_NAME: str = "portfolio"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ISOLATION_LEVEL: str = "READ COMMITTED"
    DB_RETRY_ATTEMPTS: int = 4
    DB_RETRY_BASE_DELAY: float = 0.05
    DB_RETRY_JITTER: float = 0.025
    DB_NOWAIT_LOCKS: bool = False
    INNODB_LOCK_WAIT_TIMEOUT_SEC: int = 10
    SECURITY_MAX_CONCURRENCY: int = 4
    STORAGE_MAX_CONCURRENCY: int = 8

    # Optimistic view counter
    VIEW_OPTIMISTIC_MAX_RETRIES: int = 3
    VIEW_OPTIMISTIC_BACKOFF_MS: list[int] = Field(default_factory=lambda: [50, 80, 120])

    # Redis Cache Configuration (optional - the API works without Redis)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_ENABLED: bool = True  # Set to False to disable Redis caching
    CACHE_TTL_PROJECT_LIST: int = 60
    CACHE_TTL_PROJECT: int = 120

    # Rate limiting, see app.core.rate_limit.limiter for syntax
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/15minutes"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # Maximum accepted request body; files go straight to object storage.
    MAX_REQUEST_BYTES: int = 1024 * 1024  # 1 MB

    # Object storage (S3 or Cloudflare R2)
    STORAGE_PROVIDER: str = "s3"  # s3 | r2
    S3_BUCKET: str | None = None
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None
    R2_ACCOUNT_ID: str | None = None
    R2_BUCKET: str | None = None
    R2_ACCESS_KEY_ID: str | None = None
    R2_SECRET_ACCESS_KEY: str | None = None
    PRESIGNED_URL_EXPIRY: int = 60
    DOWNLOAD_URL_EXPIRY: int = 3600
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10 MB
    ALLOWED_MIME_TYPES: list[str] = Field(
        default_factory=lambda: [
            "image/jpeg",
            "image/png",
            "image/webp",
            "application/pdf",
        ]
    )

    # Sentry
    SENTRY_DSN: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float | None = None
    SENTRY_PROFILES_SAMPLE_RATE: float = 0.1

    # Seed credentials
    ADMIN_EMAIL: str = "admin@portfolio.com"
    ADMIN_PASSWORD: str = "Admin@123456"

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )


settings = Settings()
