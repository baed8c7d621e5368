"""Application Bootstrap Unit Tests"""
import pytest
from fastapi.testclient import TestClient
from starlette.responses import JSONResponse, Response

from src.presentation.api.interceptors import transform_response
from src.presentation.main import create_app


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings))


class TestRoutes:
    """ルーティングのテスト"""

    def test_routes_are_mounted_under_prefix(self, client):
        """正常: ルートは /api 配下に公開される"""
        assert client.get("/api/health").status_code == 200
        assert client.get("/health").status_code == 404

    def test_successful_response_is_transformed(self, client):
        """正常: 成功レスポンスは共通エンベロープで包まれる"""
        body = client.get("/api/health").json()

        assert body["success"] is True
        assert body["data"] == {
            "status": "healthy",
            "service": "queue-manager",
            "environment": "test",
        }
        assert "timestamp" in body

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/ready", headers={"X-Request-ID": "abc"})

        assert response.headers["x-request-id"] == "abc"


class TestDocumentation:
    """API ドキュメントのテスト"""

    def test_swagger_ui_is_served(self, client):
        response = client.get("/api/docs")

        assert response.status_code == 200
        assert "swagger-ui" in response.text
        assert "/api/docs-json" in response.text

    def test_openapi_document(self, client):
        """正常: OpenAPI に Bearer 認証スキームと /api 配下のパスが含まれる"""
        schema = client.get("/api/docs-json").json()

        assert schema["info"]["title"] == "Smart Appointment & Queue Manager API"
        assert schema["info"]["version"] == "1.0"
        assert schema["components"]["securitySchemes"]["bearer"]["scheme"] == "bearer"
        assert "/api/health" in schema["paths"]

    def test_documentation_is_not_transformed(self, client):
        schema = client.get("/api/docs-json").json()

        assert "success" not in schema


class TestTransformResponse:
    """transform_response のテスト"""

    def test_error_response_passes_through(self):
        response = JSONResponse(status_code=404, content={"detail": "x"})

        assert transform_response(response) is response

    def test_non_json_passes_through(self):
        response = Response(content=b"hi", media_type="text/plain")

        assert transform_response(response) is response

    def test_custom_headers_are_kept(self):
        response = JSONResponse(content=[1, 2], headers={"X-Total": "2"})

        transformed = transform_response(response)

        assert transformed.headers["x-total"] == "2"
        assert transformed.headers.getlist("content-type") == ["application/json"]
