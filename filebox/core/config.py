from typing import List, Optional, Union
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "FileBox"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DB_USER: str = "filebox"
    DB_PASSWORD: str = "filebox"
    DB_NAME: str = "filebox"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    # Full SQLAlchemy URL, overrides the DB_* parts when set
    DB_URL: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Redis
    REDIS_PASSWORD: str = ""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/0"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    # Blob storage: "minio" or "local"
    STORAGE_BACKEND: str = "minio"
    LOCAL_STORAGE_PATH: str = "./storage"
    BLOB_TIMEOUT_SECONDS: float = 10.0
    BLOB_RETRY_ATTEMPTS: int = 3
    BLOB_RETRY_BACKOFF_SECONDS: float = 0.2

    # MinIO
    MINIO_ROOT_USER: str = "minioadmin"
    MINIO_ROOT_PASSWORD: str = "minioadmin"
    MINIO_BUCKET_NAME: str = "filebox-files"
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_SECURE: bool = False

    # JWT
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # CORS
    BACKEND_CORS_ORIGINS: Union[List[str], str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, str) and v.startswith("["):
            return json.loads(v)
        return v

    # File Upload
    MAX_FILE_SIZE_MB: int = 100
    MAX_ANONYMOUS_FILE_SIZE_MB: int = 50

    @property
    def MAX_FILE_SIZE_BYTES(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    @property
    def MAX_ANONYMOUS_FILE_SIZE_BYTES(self) -> int:
        return self.MAX_ANONYMOUS_FILE_SIZE_MB * 1024 * 1024

    # Shares (an expiry of 0 hours means the share never expires)
    SHARE_CODE_LENGTH: int = 6
    SHARE_CODE_MAX_ATTEMPTS: int = 5
    SHARE_DEFAULT_EXPIRE_HOURS: int = 1
    ANONYMOUS_SHARE_DEFAULT_EXPIRE_HOURS: int = 1
    SHARE_MAX_EXPIRE_HOURS: int = 24 * 365 * 10

    # Rate limits, requests per client IP per minute
    SHARE_RATE_LIMIT_PER_MINUTE: int = 100
    AUTH_RATE_LIMIT_PER_MINUTE: int = 20
    UPLOAD_RATE_LIMIT_PER_MINUTE: int = 10
    # Key limits on X-Forwarded-For; enable only behind a proxy that sets it
    TRUST_PROXY_HEADERS: bool = False

    # Background cleanup (0 disables the sweep)
    CLEANUP_INTERVAL_SECONDS: int = 300
    CLEANUP_BATCH_SIZE: int = 200

    # Initial admin account
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_USERNAME: str = "admin"


settings = Settings()
