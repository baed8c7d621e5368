"""Response Transform Interceptor"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Coroutine

from fastapi.routing import APIRoute
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

_REPLACED_HEADERS = (b"content-length", b"content-type")


def transform_response(response: Response) -> Response:
    """成功 (2xx) した JSON レスポンスを共通エンベロープで包む"""
    if not 200 <= response.status_code < 300:
        return response
    if not response.headers.get("content-type", "").startswith("application/json"):
        return response
    body = getattr(response, "body", None)
    if body is None:
        return response

    transformed = JSONResponse(
        status_code=response.status_code,
        content={
            "success": True,
            "data": json.loads(body) if body else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        background=response.background,
    )
    transformed.raw_headers.extend(
        (name, value)
        for name, value in response.raw_headers
        if name.lower() not in _REPLACED_HEADERS
    )
    return transformed


class TransformRoute(APIRoute):
    """レスポンス変換を適用するルートクラス"""

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_route_handler = super().get_route_handler()

        async def transform_route_handler(request: Request) -> Response:
            response = await original_route_handler(request)
            return transform_response(response)

        return transform_route_handler
