"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Variable names match the ones the deployment already sets
(AWS_ACCESS_KEY_ID, AWS_S3_BUCKET_NAME, CLOUDINARY_CLOUD_NAME, ...).

Mock modes enable local development without external services.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BackendName = Literal["bucket", "media-service"]
KNOWN_BACKENDS = ("bucket", "media-service")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like listing_backends), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Memories API"
    api_version: str = "v1"
    debug: bool = Field(
        default=False,
        description="Include stack traces in 500 responses. Never enable in production."
    )

    # S3 Configuration
    aws_access_key_id: str = Field(
        default="",
        description="AWS access key ID"
    )
    aws_secret_access_key: str = Field(
        default="",
        description="AWS secret access key"
    )
    aws_region: str = Field(
        default="eu-west-1",
        description="Bucket region, also used to build public object URLs"
    )
    aws_s3_bucket_name: str = Field(
        default="",
        description="Bucket holding uploaded media"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3-compatible endpoint (MinIO, R2). Leave empty for AWS."
    )
    s3_key_prefix: str = Field(
        default="memories-to-cloud",
        description="Key prefix; objects are stored under {prefix}/{user_id}/"
    )
    s3_public_read: bool = Field(
        default=True,
        description="Upload objects with the public-read ACL so their URLs are directly viewable"
    )
    s3_max_keys: int = Field(
        default=1000,
        description="Maximum objects returned per user listing"
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real bucket."
    )

    # Cloudinary Configuration
    cloudinary_cloud_name: str = Field(
        default="",
        description="Cloudinary cloud name"
    )
    cloudinary_api_key: str = Field(
        default="",
        description="Cloudinary API key"
    )
    cloudinary_api_secret: str = Field(
        default="",
        description="Cloudinary API secret, also used to sign direct uploads"
    )
    cloudinary_folder: str = Field(
        default="photo-uploader",
        description="Root folder; media is stored under {folder}/{user_id}"
    )
    cloudinary_max_results: int = Field(
        default=100,
        description="Maximum resources returned per resource type in a listing"
    )
    cloudinary_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of Cloudinary."
    )

    # Backend Selection
    upload_backend: BackendName = Field(
        default="bucket",
        description="Backend that receives new uploads"
    )
    listing_backends: str = Field(
        default="bucket,media-service",
        description="Comma-separated backends queried when listing a user's media"
    )

    # Application Behavior
    default_user_id: str = Field(
        default="default-user",
        description="User id used when an upload carries no userId field"
    )
    max_upload_size_mb: int = Field(
        default=100,
        description="Maximum request body size for uploads in MB"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Value of Access-Control-Allow-Origin on API responses"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def listing_backends_list(self) -> list[str]:
        """Parse comma-separated listing backends, ignoring unknown names."""
        names = []
        for name in self.listing_backends.split(","):
            name = name.strip().lower()
            if name in KNOWN_BACKENDS and name not in names:
                names.append(name)
        return names

    @property
    def enabled_backends(self) -> list[str]:
        """Every backend that must be reachable: upload target plus listings."""
        names = [self.upload_backend]
        for name in self.listing_backends_list:
            if name not in names:
                names.append(name)
        return names

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def media_service_configured(self) -> bool:
        return self.cloudinary_mock_mode or bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on enabled backends.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on which backends are enabled and whether they're mocked.
        """
        missing = []
        enabled = self.enabled_backends

        if "bucket" in enabled and not self.s3_mock_mode:
            if not self.aws_access_key_id:
                missing.append("AWS_ACCESS_KEY_ID")
            if not self.aws_secret_access_key:
                missing.append("AWS_SECRET_ACCESS_KEY")
            if not self.aws_s3_bucket_name:
                missing.append("AWS_S3_BUCKET_NAME")

        if "media-service" in enabled and not self.cloudinary_mock_mode:
            if not self.cloudinary_cloud_name:
                missing.append("CLOUDINARY_CLOUD_NAME")
            if not self.cloudinary_api_key:
                missing.append("CLOUDINARY_API_KEY")
            if not self.cloudinary_api_secret:
                missing.append("CLOUDINARY_API_SECRET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() or override the dependency.
    """
    return Settings()
