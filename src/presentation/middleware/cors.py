"""CORS Policy Middleware

ルーティングより前段で全レスポンスに CORS ヘッダーを付与し、
プリフライト (OPTIONS) はアプリケーションに到達させずに 200 を返す。
"""
from __future__ import annotations

from typing import Iterable, Sequence

import structlog
from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.infrastructure.config import Settings

logger = structlog.get_logger()

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


class CorsPolicy:
    """
    CORS ポリシー

    状態を持たない純粋なポリシー。ASGI ミドルウェアと
    FaaS ハンドラのエラー経路の両方から同じインスタンスを利用する。
    """

    def __init__(
        self,
        allowed_headers: Sequence[str],
        allowed_origins: Sequence[str] = (),
        max_age: int | None = None,
    ) -> None:
        self._allowed_headers = _unique(allowed_headers)
        self._allowed_origins = frozenset(allowed_origins)
        self._max_age = max_age

    @classmethod
    def from_settings(cls, settings: Settings) -> "CorsPolicy":
        return cls(
            allowed_headers=settings.cors_allowed_headers,
            allowed_origins=settings.cors_allowed_origins,
            max_age=settings.cors_max_age,
        )

    @staticmethod
    def is_preflight(method: str) -> bool:
        return method.upper() == "OPTIONS"

    def allow_origin(self, origin: str | None) -> str | None:
        """Access-Control-Allow-Origin の値。許可しない場合は None"""
        if not origin:
            return "*"
        if self._allowed_origins and origin not in self._allowed_origins:
            return None
        return origin

    def allow_headers(self, requested_headers: str | None) -> str:
        requested = [h.strip() for h in (requested_headers or "").split(",") if h.strip()]
        return ", ".join(_unique([*self._allowed_headers, *requested]))

    def headers_for(
        self, origin: str | None, requested_headers: str | None = None
    ) -> list[tuple[str, str]]:
        """リクエストの Origin / Access-Control-Request-Headers から付与するヘッダーを算出"""
        headers: list[tuple[str, str]] = []
        allowed_origin = self.allow_origin(origin)
        if allowed_origin is not None:
            headers.append(("Access-Control-Allow-Origin", allowed_origin))
        else:
            logger.warning("cors_origin_rejected", origin=origin)
        headers.append(("Access-Control-Allow-Methods", ", ".join(ALLOWED_METHODS)))
        headers.append(("Access-Control-Allow-Headers", self.allow_headers(requested_headers)))
        headers.append(("Access-Control-Allow-Credentials", "true"))
        if self._max_age is not None:
            headers.append(("Access-Control-Max-Age", str(self._max_age)))
        if origin:
            headers.append(("Vary", "Origin"))
        return headers


class CorsPolicyMiddleware:
    """CORS ミドルウェア (最外周に配置する)"""

    def __init__(self, app: ASGIApp, policy: CorsPolicy) -> None:
        self.app = app
        self.policy = policy

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_headers = Headers(scope=scope)
        cors_headers = self.policy.headers_for(
            request_headers.get("origin"),
            request_headers.get("access-control-request-headers"),
        )

        if self.policy.is_preflight(scope["method"]):
            response = Response(status_code=200)
            for name, value in cors_headers:
                response.headers[name] = value
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in cors_headers:
                    if name == "Vary":
                        headers.add_vary_header(value)
                    else:
                        headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value.lower() not in seen:
            seen.add(value.lower())
            result.append(value)
    return result
