import os

# インポート時に handler モジュールが Settings を読むため、トップレベルで環境変数を設定する
os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_LOG_LEVEL", "WARNING")

import base64
from typing import Any

import pytest
from fastapi import APIRouter, Request, Response

from src.infrastructure.config import Settings, get_settings
from src.presentation.api.interceptors import TransformRoute
from src.presentation.api.routes import health_routes


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """環境変数を変更するテストのために設定キャッシュをクリア"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="test", log_level="WARNING")


@pytest.fixture
def test_router() -> APIRouter:
    """テスト用ルート (例外送出・エコー)"""
    router = APIRouter(route_class=TransformRoute)

    @router.get("/boom")
    async def boom() -> dict:
        raise RuntimeError("boom")

    @router.post("/echo")
    async def echo(request: Request) -> Response:
        body = await request.body()
        return Response(
            content=body,
            media_type=request.headers.get("content-type", "application/octet-stream"),
        )

    return router


@pytest.fixture
def routers(test_router: APIRouter) -> list[APIRouter]:
    return [health_routes.router, test_router]


@pytest.fixture
def make_event():
    """API Gateway v1 / Netlify 形式のイベントを生成"""

    def _make_event(
        method: str = "GET",
        path: str = "/api/health",
        headers: dict[str, str] | None = None,
        body: bytes | str | None = None,
        binary: bool = False,
        query: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        if isinstance(body, bytes):
            encoded = base64.b64encode(body).decode("ascii") if binary else body.decode()
        else:
            encoded = body
        return {
            "httpMethod": method,
            "path": path,
            "headers": headers or {},
            "queryStringParameters": query,
            "body": encoded,
            "isBase64Encoded": binary,
        }

    return _make_event


class FakeLambdaContext:
    aws_request_id = "req-123"
    function_name = "server"

    def get_remaining_time_in_millis(self) -> int:
        return 10_000


@pytest.fixture
def lambda_context() -> FakeLambdaContext:
    return FakeLambdaContext()
