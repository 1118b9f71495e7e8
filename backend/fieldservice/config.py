import warnings

from pydantic_settings import BaseSettings
from pydantic import model_validator
from typing import List, Optional

_INSECURE_SECRET_KEY = "change-me-to-a-random-secret-key-at-least-32-chars"


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://fieldservice:fieldservice@db:5432/fieldservice"

    # JWT (issued by the identity provider, verified here)
    SECRET_KEY: str = _INSECURE_SECRET_KEY
    ALGORITHM: str = "HS256"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost", "http://localhost:5173"]

    # Rate limiting
    DEFAULT_RATE_LIMIT: str = "120/minute"

    # Object storage
    S3_BUCKET: str = "fieldservice-visit-photos"
    AWS_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: Optional[str] = None  # MinIO / localstack

    # Photo
    MAX_PHOTO_SIZE: int = 10 * 1024 * 1024  # 10MB
    PHOTO_UPLOAD_URL_EXPIRE_SECONDS: int = 900
    PHOTO_DOWNLOAD_URL_EXPIRE_SECONDS: int = 3600

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_insecure_defaults(self):
        if self.SECRET_KEY == _INSECURE_SECRET_KEY:
            warnings.warn(
                "SECURITY WARNING: SECRET_KEY uses an insecure default "
                "and MUST be overridden via environment variables or .env file.",
                stacklevel=2,
            )
        return self


settings = Settings()
