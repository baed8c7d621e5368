"""Settings Unit Tests"""
from mangum.adapter import DEFAULT_TEXT_MIME_TYPES

from src.infrastructure.config import Settings, get_settings


class TestSettings:
    """Settings のテスト"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PORT", raising=False)
        monkeypatch.delenv("APP_RUN_MODE", raising=False)

        settings = Settings()

        assert settings.port == 3000
        assert settings.run_mode == "lambda"
        assert settings.is_server_mode is False
        assert settings.api_root == "/api"
        assert settings.docs_url == "/api/docs"
        assert settings.openapi_url == "/api/docs-json"
        assert settings.cors_allowed_origins == []

    def test_text_mime_types_default_is_a_copy(self):
        """正常: テキスト判定の既定値は Mangum の既定リストのコピー"""
        settings = Settings()

        settings.text_mime_types.append("application/x-ndjson")

        assert Settings().text_mime_types == list(DEFAULT_TEXT_MIME_TYPES)

    def test_env_overrides(self, monkeypatch):
        """正常: 環境変数から読み込む (PORT は接頭辞なし)"""
        monkeypatch.setenv("PORT", "4000")
        monkeypatch.setenv("APP_RUN_MODE", "server")
        monkeypatch.setenv("APP_CORS_ALLOWED_ORIGINS", '["https://a.com"]')

        settings = Settings()

        assert settings.port == 4000
        assert settings.is_server_mode is True
        assert settings.cors_allowed_origins == ["https://a.com"]

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
