"""
Application configuration settings
Handles environment variables and configuration management
All configuration values should be set in .env file or environment variables
Reference: https://fastapi.tiangolo.com/advanced/settings/
"""
import json
from pydantic import Field, ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    Uses pydantic BaseSettings for validation and type conversion

    All values should be set in .env file (see .env.example for template)
    """
    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Lookboard API"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Upstash Redis (REST) - the key/value store holding all looks and boards
    # Reference: https://upstash.com/docs/redis/features/restapi
    UPSTASH_REDIS_REST_URL: str = Field(
        ...,
        description="Upstash Redis REST URL. Must be set via environment variable."
    )
    UPSTASH_REDIS_REST_TOKEN: str = Field(
        ...,
        description="Upstash Redis REST token. Must be set via environment variable."
    )
    KV_TIMEOUT_SECONDS: float = 10.0

    # Expirations (seconds)
    INSTANCE_TTL_SECONDS: int = 90 * 24 * 60 * 60
    IMPORT_CHUNK_TTL_SECONDS: int = 60 * 60

    # Owner stamped on legacy looks by the migrate-looks admin tool
    MIGRATION_OWNER_EMAIL: str = "admin@lookboard.local"
    MIGRATION_OWNER_USERNAME: str = "Lookboard Admin"

    # Allowed CORS origins (comma-separated or JSON array)
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    # Optional S3 asset storage for uploaded variations
    # Reference: https://boto3.amazonaws.com/v1/documentation/api/latest/guide/configuration.html
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET_NAME: str | None = None
    AWS_S3_BASE_URL: str | None = None

    @property
    def allowed_origins_list(self) -> list[str]:
        """
        Parse allowed origins into a list.

        Supports two formats:
        1. JSON array: ["https://app.example.com", "https://admin.example.com"]
        2. Comma-separated: https://app.example.com,https://admin.example.com
        """
        raw = self.ALLOWED_ORIGINS.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return [origin.strip() for origin in raw.split(",") if origin.strip()]

        if isinstance(parsed, str):
            return [parsed.strip()]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        raise ValueError(
            "ALLOWED_ORIGINS must be a JSON array or comma-separated string"
        )

    @property
    def s3_enabled(self) -> bool:
        """True when enough AWS configuration is present to upload assets."""
        return bool(
            self.AWS_S3_BUCKET_NAME
            and self.AWS_ACCESS_KEY_ID
            and self.AWS_SECRET_ACCESS_KEY
        )

    # Pydantic v2 configuration
    # Reference: https://docs.pydantic.dev/latest/api/config/
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance
# Import this in other modules to access configuration
settings = Settings()
