"""
FaaS HTTP Handler (Netlify Functions / AWS Lambda)

呼び出しごとのフロー:
    イベント -> translate_request -> HandlerCache.get_or_create
    -> ASGI アプリ (CORS -> ErrorBoundary -> ルーティング) -> translate_response

アプリケーションの構築やディスパッチ自体が失敗した場合もこのハンドラで
エラーエンベロープに変換し、同じ CorsPolicy で CORS ヘッダーを付与する。
"""
from __future__ import annotations

import asyncio
import json
from contextlib import AsyncExitStack
from typing import Any, Callable, Sequence

import structlog
from fastapi import FastAPI

from src.handlers.http.event_adapter import (
    DEFAULT_TEXT_MIME_TYPES,
    AsgiDispatcher,
    CanonicalRequest,
    CanonicalResponse,
    translate_request,
    translate_response,
)
from src.handlers.http.handler_cache import HandlerCache
from src.infrastructure.config import Settings, get_settings
from src.presentation.main import create_app
from src.presentation.middleware.cors import CorsPolicy
from src.presentation.middleware.error_handler import error_envelope

logger = structlog.get_logger()

AppFactory = Callable[[Settings], FastAPI]


async def build_dispatcher(
    settings: Settings, app_factory: AppFactory = create_app
) -> AsgiDispatcher:
    """アプリケーションを構築し、lifespan の startup を実行したディスパッチャを返す"""
    app = app_factory(settings)
    exit_stack = AsyncExitStack()
    await exit_stack.enter_async_context(app.router.lifespan_context(app))
    return AsgiDispatcher(app, exit_stack=exit_stack)


class ServerlessHandler:
    """FaaS エントリポイント"""

    def __init__(
        self,
        cache: HandlerCache[Callable[..., Any]],
        cors_policy: CorsPolicy,
        text_mime_types: Sequence[str] = DEFAULT_TEXT_MIME_TYPES,
    ) -> None:
        self.cache = cache
        self.cors_policy = cors_policy
        self.text_mime_types = list(text_mime_types)
        self._loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        app_factory: AppFactory = create_app,
    ) -> "ServerlessHandler":
        settings = settings or get_settings()
        return cls(
            cache=HandlerCache(lambda: build_dispatcher(settings, app_factory)),
            cors_policy=CorsPolicy.from_settings(settings),
            text_mime_types=settings.text_mime_types,
        )

    async def ainvoke(self, event: dict[str, Any], context: Any = None) -> dict[str, Any]:
        try:
            request = translate_request(event, context, self.text_mime_types)
        except Exception as exc:
            logger.error("invocation_malformed", error=str(exc), exc_info=True)
            return self._malformed_response(exc)

        structlog.contextvars.clear_contextvars()
        if request.context.request_id:
            structlog.contextvars.bind_contextvars(request_id=request.context.request_id)
        logger.info(
            "invocation_received",
            method=request.method,
            path=request.path,
            remaining_time_ms=request.context.remaining_time_ms,
            cache_state=self.cache.state.value,
        )

        try:
            dispatch = await self.cache.get_or_create()
            response = await dispatch(request)
        except Exception as exc:
            logger.error("invocation_failed", error=str(exc), exc_info=True)
            response = self._fallback_response(request, exc)

        return translate_response(response, request)

    def __call__(self, event: dict[str, Any], context: Any = None) -> dict[str, Any]:
        # キャッシュ済みのアプリはループに紐づくため、プロセス内で同じループを使い続ける
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(self.ainvoke(event, context))

    def _cors_headers(self, request: CanonicalRequest | None) -> list[tuple[str, str]]:
        origin = request.header("origin") if request else None
        requested = request.header("access-control-request-headers") if request else None
        return [
            (name.lower(), value)
            for name, value in self.cors_policy.headers_for(origin, requested)
        ]

    def _fallback_response(
        self, request: CanonicalRequest, exc: Exception
    ) -> CanonicalResponse:
        cors_headers = self._cors_headers(request)
        if self.cors_policy.is_preflight(request.method):
            return CanonicalResponse(status_code=200, headers=cors_headers)
        return CanonicalResponse(
            status_code=500,
            headers=[("content-type", "application/json"), *cors_headers],
            body=json.dumps(error_envelope(exc)).encode("utf-8"),
        )

    def _malformed_response(self, exc: Exception) -> dict[str, Any]:
        """イベント形式を判定できない場合の応答 (REST 形式で返す)"""
        return {
            "statusCode": 500,
            "headers": dict([("content-type", "application/json"), *self._cors_headers(None)]),
            "multiValueHeaders": {},
            "body": json.dumps(error_envelope(exc)),
            "isBase64Encoded": False,
        }


handler = ServerlessHandler.from_settings()
lambda_handler = handler
