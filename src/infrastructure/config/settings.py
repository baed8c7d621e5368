"""Application Settings"""
from functools import lru_cache

from mangum.adapter import DEFAULT_TEXT_MIME_TYPES
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_HEADERS = [
    "Content-Type",
    "Authorization",
    "Accept",
    "Origin",
    "X-Requested-With",
    "X-Request-ID",
]


class Settings(BaseSettings):
    """
    アプリケーション設定

    12-Factor App の Config 原則に従い、
    すべての設定は環境変数から取得する。
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = "queue-manager"
    environment: str = "development"
    log_level: str = "INFO"

    # Entry mode: "lambda" (FaaS ハンドラ) / "server" (常駐サーバ)
    run_mode: str = "lambda"

    # Local server
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "APP_PORT"))

    # HTTP surface
    api_prefix: str = "api"
    docs_path: str = "api/docs"
    api_title: str = "Smart Appointment & Queue Manager API"
    api_description: str = "API for managing appointments, staff, services, and queues"
    api_version: str = "1.0"

    # CORS
    cors_allowed_origins: list[str] = Field(default_factory=list)
    cors_allowed_headers: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_HEADERS)
    )
    cors_max_age: int | None = None

    # Event adapter
    text_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEXT_MIME_TYPES)
    )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_server_mode(self) -> bool:
        return self.run_mode.lower() == "server"

    @property
    def api_root(self) -> str:
        return "/" + self.api_prefix.strip("/")

    @property
    def docs_url(self) -> str:
        return "/" + self.docs_path.strip("/")

    @property
    def openapi_url(self) -> str:
        return f"{self.docs_url}-json"


@lru_cache()
def get_settings() -> Settings:
    """設定のシングルトンインスタンスを取得"""
    return Settings()
