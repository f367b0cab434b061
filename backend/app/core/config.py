from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_ALLOWED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
    "application/pdf",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        protected_namespaces=(),
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    env: Literal["local", "prod", "test"] = Field(default="local", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    s3_access_key: str = Field(default="change-me", alias="ACCESS_KEY_ID")
    s3_secret_key: str = Field(default="change-me", alias="SECRET_ACCESS_KEY")
    s3_region: str = Field(default="us-east-1", alias="REGION")
    s3_bucket_name: str = Field(default="uploads", alias="S3_BUCKET_NAME")
    s3_endpoint: HttpUrl | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_auto_create_bucket: bool = Field(default=True, alias="S3_AUTO_CREATE_BUCKET")

    timeout: int = Field(default=30, gt=0, alias="TIMEOUT")
    presign_ttl: int | None = Field(default=None, gt=0, alias="S3_PRESIGN_TTL")
    multipart_threshold_mb: int = Field(default=10, gt=0, alias="S3_MULTIPART_THRESHOLD_MB")
    multipart_part_size_mb: int = Field(default=10, ge=5, alias="S3_MULTIPART_PART_SIZE_MB")
    max_concurrency: int = Field(default=10, gt=0, alias="S3_MAX_CONCURRENCY")

    allowed_mime_types: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_ALLOWED_MIME_TYPES,
        alias="ALLOWED_MIME_TYPES",
    )

    api_group: str = Field(default="", alias="API_GROUP")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")

    @field_validator("allowed_mime_types", mode="before")
    @classmethod
    def _split_mime_types(cls, value):
        # ALLOWED_MIME_TYPES=image/png,application/pdf
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @field_validator("api_group")
    @classmethod
    def _normalize_api_group(cls, value: str) -> str:
        value = value.strip().strip("/")
        return f"/{value}" if value else ""

    @property
    def presign_expires_in(self) -> int:
        return self.presign_ttl or self.timeout


@lru_cache
def get_settings() -> Settings:
    return Settings()
