"""Application configuration using pydantic-settings."""
import re
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "local"
    app_name: str = "civic-watchboard-api"
    database_url: str = Field(
        "sqlite:///./dev.db",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )
    allowed_origins: str = "*"
    log_level: str = "INFO"

    # Static admin token for /api/admin endpoints
    admin_token: Optional[str] = Field(None, validation_alias="ADMIN_TOKEN")

    # data.go.kr BidPublicInfoService (나라장터 입찰공고정보서비스)
    data_go_kr_service_key: Optional[str] = Field(None, validation_alias="DATA_GO_KR_SERVICE_KEY")
    g2b_base_url: str = Field(
        "https://apis.data.go.kr/1230000/ad/BidPublicInfoService",
        validation_alias="G2B_BASE_URL",
    )
    g2b_timeout_seconds: int = Field(30, validation_alias="G2B_TIMEOUT_SECONDS")
    g2b_request_delay_seconds: float = Field(0.12, validation_alias="G2B_REQUEST_DELAY_SECONDS")

    @field_validator("database_url")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Normalize DATABASE_URL and ensure SSL is required for PostgreSQL."""
        if v.startswith("sqlite"):
            return v

        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+psycopg://", 1)

        if v.startswith("postgresql://") and not v.startswith("postgresql+psycopg://"):
            v = v.replace("postgresql://", "postgresql+psycopg://", 1)

        if not v.startswith("postgresql+psycopg://"):
            raise ValueError("DATABASE_URL must start with postgresql://, postgresql+psycopg://, or sqlite")

        if "sslmode=" not in v:
            separator = "&" if "?" in v else "?"
            v = f"{v}{separator}sslmode=require"
        elif "sslmode=require" not in v:
            v = re.sub(r"sslmode=[^&]+", "sslmode=require", v)

        return v

    @property
    def allowed_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        if self.allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",")]


settings = Settings()
