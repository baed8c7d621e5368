"""Error Boundary Middleware"""
from __future__ import annotations

import structlog
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = structlog.get_logger()

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_envelope(exc: BaseException) -> dict[str, str]:
    """未処理例外を正規化したレスポンスボディ (スタックトレースは含めない)"""
    return {
        "message": INTERNAL_ERROR_MESSAGE,
        "error": str(exc) or type(exc).__name__,
    }


class ErrorBoundaryMiddleware:
    """
    エラーバウンダリ

    CORS ミドルウェアの内側に配置し、ルーティング以降で発生した
    未処理例外を 500 のエンベロープに変換する。
    HTTPException 等はこの内側で FastAPI のハンドラが処理する。
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking)
        except Exception as exc:
            logger.error(
                "unhandled_error",
                error=str(exc),
                method=scope.get("method"),
                path=scope.get("path"),
                exc_info=True,
            )
            if response_started:
                raise
            response = JSONResponse(status_code=500, content=error_envelope(exc))
            await response(scope, receive, send)
