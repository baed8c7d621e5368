"""Invocation Event Adapter

プラットフォームの呼び出しイベントと ASGI リクエスト/レスポンスとを相互変換する。
イベント形式の判定と変換は Mangum のハンドラクラスに委ね、
ここでは呼び出し単位の非同期ディスパッチだけを扱う。

- API Gateway REST / Netlify Functions: httpMethod / path / multiValueHeaders
- HTTP API / Function URL: version "2.0" / requestContext.http / cookies
- ALB, Lambda@Edge
"""
from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Sequence

from mangum.adapter import DEFAULT_TEXT_MIME_TYPES
from mangum.handlers import ALB, APIGateway, HTTPGateway, LambdaAtEdge
from mangum.types import LambdaConfig, LambdaHandler, Response
from starlette.types import ASGIApp, Message, Scope

HANDLERS: tuple[type[LambdaHandler], ...] = (ALB, HTTPGateway, APIGateway, LambdaAtEdge)

Header = tuple[str, str]


class UnsupportedEventError(ValueError):
    """どのハンドラクラスにも該当しないイベント"""


@dataclass(frozen=True)
class InvocationContext:
    """プラットフォームが渡す実行メタデータ (読み取り専用)"""

    request_id: str | None = None
    remaining_time_ms: int | None = None
    function_name: str | None = None

    @classmethod
    def from_platform(cls, context: Any) -> "InvocationContext":
        if context is None:
            return cls()
        remaining = getattr(context, "get_remaining_time_in_millis", None)
        return cls(
            request_id=getattr(context, "aws_request_id", None),
            remaining_time_ms=remaining() if callable(remaining) else None,
            function_name=getattr(context, "function_name", None),
        )


@dataclass
class CanonicalRequest:
    """
    正規化済みリクエスト

    scope / body は Mangum のハンドラが組み立てた ASGI スコープと本文。
    handler はレスポンスを同じイベント形式へ戻すために保持する。
    """

    scope: Scope
    body: bytes = b""
    handler: LambdaHandler | None = None
    context: InvocationContext = field(default_factory=InvocationContext)

    @property
    def method(self) -> str:
        return self.scope["method"]

    @property
    def path(self) -> str:
        return self.scope["path"]

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def headers(self) -> list[Header]:
        return [
            (_decode(key), _decode(value))
            for key, value in self.scope.get("headers", [])
        ]

    def header(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None


@dataclass
class CanonicalResponse:
    status_code: int
    headers: list[Header] = field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    def as_mangum(self) -> Response:
        return {
            "status": self.status_code,
            "headers": [
                [key.encode("latin-1"), value.encode("latin-1")]
                for key, value in self.headers
            ],
            "body": self.body,
        }


def lambda_config(text_mime_types: Sequence[str] = DEFAULT_TEXT_MIME_TYPES) -> LambdaConfig:
    return {
        "api_gateway_base_path": "/",
        "text_mime_types": list(text_mime_types),
        "exclude_headers": [],
    }


def infer_handler(event: dict[str, Any], context: Any, config: LambdaConfig) -> LambdaHandler:
    """イベント形式に対応する Mangum ハンドラを選択"""
    # Netlify Functions は requestContext / resource を持たない REST 形式
    if "httpMethod" in event and "requestContext" not in event:
        event = {"resource": event.get("path", "/"), "requestContext": {}, **event}

    for handler_cls in HANDLERS:
        if handler_cls.infer(event, context, config):
            return handler_cls(event, context, config)
    raise UnsupportedEventError("Unable to determine the invocation event type")


def translate_request(
    event: dict[str, Any],
    context: Any = None,
    text_mime_types: Sequence[str] = DEFAULT_TEXT_MIME_TYPES,
) -> CanonicalRequest:
    """呼び出しイベントを CanonicalRequest に変換"""
    handler = infer_handler(event, context, lambda_config(text_mime_types))
    return CanonicalRequest(
        scope=handler.scope,
        body=handler.body,
        handler=handler,
        context=InvocationContext.from_platform(context),
    )


def translate_response(response: CanonicalResponse, request: CanonicalRequest) -> dict[str, Any]:
    """CanonicalResponse をリクエストと同じ形式のプラットフォーム応答に変換"""
    if request.handler is None:
        raise UnsupportedEventError("Request was not translated from a platform event")
    return request.handler(response.as_mangum())


class AsgiDispatcher:
    """
    CanonicalRequest を ASGI アプリケーションへ直接ディスパッチする

    リクエストヘッダーと本文はスコープのまま渡し、レスポンスは
    アプリケーションが送信したステータス、ヘッダー、バイト列をそのまま返す。
    アプリケーションの例外は呼び出し元に伝播する。
    """

    def __init__(self, app: ASGIApp, exit_stack: AsyncExitStack | None = None) -> None:
        self.app = app
        self._exit_stack = exit_stack

    async def __call__(self, request: CanonicalRequest) -> CanonicalResponse:
        status_code = 500
        headers: list[Header] = []
        chunks: list[bytes] = []
        request_sent = False
        response_complete = asyncio.Event()

        async def receive() -> Message:
            nonlocal request_sent
            if not request_sent:
                request_sent = True
                return {"type": "http.request", "body": request.body, "more_body": False}
            # 切断はレスポンス送信完了後にのみ通知する
            await response_complete.wait()
            return {"type": "http.disconnect"}

        async def send(message: Message) -> None:
            nonlocal status_code, headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = [
                    (_decode(key), _decode(value))
                    for key, value in message.get("headers", [])
                ]
            elif message["type"] == "http.response.body":
                chunks.append(message.get("body", b""))
                if not message.get("more_body", False):
                    response_complete.set()

        try:
            await self.app(dict(request.scope), receive, send)
        finally:
            response_complete.set()

        return CanonicalResponse(status_code=status_code, headers=headers, body=b"".join(chunks))

    async def aclose(self) -> None:
        """lifespan の shutdown を実行"""
        if self._exit_stack is not None:
            await self._exit_stack.aclose()


def _decode(value: bytes | str) -> str:
    return value.decode("latin-1") if isinstance(value, bytes) else value
