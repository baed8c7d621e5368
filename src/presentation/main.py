"""FastAPI Application Entry Point

FaaS ハンドラ (src.handlers.http.handler) とローカルサーバ (src.presentation.server)
の両方がこの create_app を使い、同一の構成でアプリケーションを組み立てる。
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

import structlog
from fastapi import APIRouter, FastAPI
from fastapi.openapi.utils import get_openapi

from src.infrastructure.config import Settings, get_settings
from src.presentation.api.routes import health_routes
from src.presentation.logging_config import configure_logging
from src.presentation.middleware.cors import CorsPolicy, CorsPolicyMiddleware
from src.presentation.middleware.error_handler import ErrorBoundaryMiddleware
from src.presentation.middleware.logging import LoggingMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """アプリケーションのライフサイクル管理"""
    settings: Settings = app.state.settings
    logger.info(
        "application_starting",
        service=settings.service_name,
        environment=settings.environment,
        run_mode=settings.run_mode,
    )
    yield
    logger.info("application_shutting_down")


def default_routers() -> list[APIRouter]:
    return [health_routes.router]


def build_openapi(app: FastAPI) -> dict[str, Any]:
    """Bearer 認証スキームを含む OpenAPI ドキュメントを生成 (初回のみ)"""
    if app.openapi_schema:
        return app.openapi_schema

    schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    schema.setdefault("components", {})["securitySchemes"] = {
        "bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
    }
    app.openapi_schema = schema
    return schema


def create_app(
    settings: Settings | None = None,
    routers: Sequence[APIRouter] | None = None,
) -> FastAPI:
    """FastAPI アプリケーションを作成"""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=settings.docs_url,
        openapi_url=settings.openapi_url,
        redoc_url=None,
    )
    app.state.settings = settings

    # Middleware (後から追加したものほど外側で実行される)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(ErrorBoundaryMiddleware)
    app.add_middleware(CorsPolicyMiddleware, policy=CorsPolicy.from_settings(settings))

    # Routes
    for router in routers if routers is not None else default_routers():
        app.include_router(router, prefix=settings.api_root)

    # API Docs
    app.openapi = lambda: build_openapi(app)

    return app
