"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without external services.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origin), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = Field(
        default="scalable-backend",
        description="Service name, reported by GET /"
    )
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = Field(
        default=8080,
        description="Port the HTTP server listens on"
    )

    # Object Storage Configuration (S3-compatible)
    storage_access_key_id: str = Field(
        default="",
        description="Object store access key. Required unless in mock mode."
    )
    storage_secret_access_key: str = Field(
        default="",
        description="Object store secret key. Required unless in mock mode."
    )
    storage_bucket_name: str = Field(
        default="videos",
        description="Bucket that holds uploaded videos. Created at startup if absent."
    )
    storage_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint for S3-compatible providers (R2, MinIO). Leave unset for AWS."
    )
    storage_region: str = Field(
        default="us-east-1",
        description="Bucket region"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None,
        description="Prefix for returned video URLs, e.g. a CDN in front of the bucket"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real object storage."
    )

    # Snowflake Configuration (video documents)
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="videoapp",
        description="Database holding the video documents. Created at startup if absent."
    )
    snowflake_schema: str = Field(
        default="PUBLIC",
        description="Schema holding the video table"
    )
    snowflake_container: str = Field(
        default="videos",
        description="Table holding one document per video. Created at startup if absent."
    )
    snowflake_warehouse: Optional[str] = Field(
        default=None,
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection."
    )

    # Application Behavior
    max_upload_size_mb: int = Field(
        default=250,
        description="Maximum video file size in MB"
    )
    max_json_body_mb: int = Field(
        default=2,
        description="Maximum JSON request body size in MB"
    )
    comment_write_attempts: int = Field(
        default=3,
        ge=1,
        description="How many times a comment add/delete is retried when another request updated the video first"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origin: str = Field(
        default="*",
        description="Allowed CORS origin(s), comma-separated."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origin.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def max_json_body_bytes(self) -> int:
        return self.max_json_body_mb * 1024 * 1024

    def validate_required_fields(self) -> list[str]:
        """
        Return the environment variables that are required but missing.

        Which fields are required depends on the mock modes, so this
        can't be expressed as plain Pydantic validation. A non-empty
        result aborts startup.
        """
        missing = []

        if not self.storage_mock_mode:
            if not self.storage_access_key_id:
                missing.append("STORAGE_ACCESS_KEY_ID")
            if not self.storage_secret_access_key:
                missing.append("STORAGE_SECRET_ACCESS_KEY")

        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() or pass a Settings object to create_app.
    """
    return Settings()
