"""Local Development Server Unit Tests"""
import json

import pytest
from fastapi.testclient import TestClient

from src.handlers.http.handler import ServerlessHandler
from src.infrastructure.config import get_settings
from src.presentation import server


@pytest.fixture
def captured_run(monkeypatch) -> dict:
    """uvicorn.run を置き換え、渡されたアプリと引数を記録する"""
    captured: dict = {}

    def fake_run(app, **kwargs):
        captured["app"] = app
        captured.update(kwargs)

    monkeypatch.setattr(server.uvicorn, "run", fake_run)
    return captured


class TestServe:
    """serve のテスト"""

    def test_default_port(self, monkeypatch, captured_run):
        monkeypatch.delenv("PORT", raising=False)

        server.serve(get_settings())

        assert captured_run["port"] == 3000
        assert captured_run["host"] == "0.0.0.0"

    @pytest.mark.asyncio
    async def test_port_from_env_and_parity_with_handler(
        self, monkeypatch, captured_run, make_event
    ):
        """正常: PORT=4000 で起動し、ドキュメントが FaaS 呼び出しと同一内容になる"""
        # Arrange
        monkeypatch.setenv("PORT", "4000")
        settings = get_settings()

        # Act
        server.serve(settings)
        local = TestClient(captured_run["app"])
        faas = ServerlessHandler.from_settings(settings)
        docs_event = make_event(path="/api/docs-json")

        # Assert
        assert captured_run["port"] == 4000
        local_docs = local.get("/api/docs-json")
        faas_docs = await faas.ainvoke(docs_event)
        assert faas_docs["statusCode"] == local_docs.status_code == 200
        assert json.loads(faas_docs["body"]) == local_docs.json()

        local_ui = local.get("/api/docs")
        faas_ui = await faas.ainvoke(make_event(path="/api/docs"))
        assert faas_ui["body"] == local_ui.text


class TestMain:
    """main のテスト"""

    def test_lambda_mode_refuses_to_listen(self, monkeypatch, captured_run):
        """異常: run_mode=lambda ではサーバを起動しない"""
        monkeypatch.setenv("APP_RUN_MODE", "lambda")

        with pytest.raises(SystemExit):
            server.main()

        assert "app" not in captured_run

    def test_server_mode_starts_listener(self, monkeypatch, captured_run):
        monkeypatch.setenv("APP_RUN_MODE", "server")

        server.main()

        assert "app" in captured_run
