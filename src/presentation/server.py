"""
Local Development Server

FaaS ハンドラと同じ create_app を uvicorn で常駐起動する。
起動モードは実行方法の自己判定ではなく APP_RUN_MODE で明示的に選択する。

Usage:
    APP_RUN_MODE=server PORT=3000 queue-manager
"""
import structlog
import uvicorn

from src.infrastructure.config import Settings, get_settings
from src.presentation.main import create_app

logger = structlog.get_logger()


def serve(settings: Settings | None = None) -> None:
    """常駐サーバとして起動"""
    settings = settings or get_settings()
    app = create_app(settings)

    logger.info(
        "application_listening",
        url=f"http://localhost:{settings.port}",
        docs_url=f"http://localhost:{settings.port}{settings.docs_url}",
    )
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def main() -> None:
    """Entrypoint (console script)"""
    settings = get_settings()
    if not settings.is_server_mode:
        logger.error("server_mode_disabled", run_mode=settings.run_mode)
        raise SystemExit(
            f"run_mode={settings.run_mode!r}: FaaS handler mode is invoked by the platform; "
            "set APP_RUN_MODE=server to start the local server"
        )
    serve(settings)


if __name__ == "__main__":
    main()
