"""Handler Cache

プロセス (= コンテナ) 単位で一度だけアプリケーションを構築し、
構築済みのディスパッチ関数を保持する。

状態遷移: UNINITIALIZED -> INITIALIZING -> READY
構築に失敗した場合は UNINITIALIZED に戻し、次の呼び出しで再試行する。
"""
from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable, Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class CacheState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class HandlerCache(Generic[T]):
    """
    ディスパッチ関数のメモ化

    コールドスタート時に同時に到着した呼び出しは、
    最初の呼び出しが開始した同一の初期化タスクを待機する。
    """

    def __init__(self, factory: Callable[[], Awaitable[T]]) -> None:
        self._factory = factory
        self._state = CacheState.UNINITIALIZED
        self._pending: asyncio.Task[T] | None = None
        self._handler: T | None = None

    @property
    def state(self) -> CacheState:
        return self._state

    async def get_or_create(self) -> T:
        if self._state is CacheState.READY:
            return self._handler  # type: ignore[return-value]

        # 判定から代入までの間に await を挟まないため、イベントループ上で単一の書き手となる
        if self._pending is None:
            self._state = CacheState.INITIALIZING
            self._pending = asyncio.ensure_future(self._initialize())

        # 待機側のキャンセルが共有の初期化タスクに波及しないよう shield する
        return await asyncio.shield(self._pending)

    async def _initialize(self) -> T:
        logger.info("handler_cache_initializing")
        start_time = time.perf_counter()
        try:
            handler = await self._factory()
        except BaseException as exc:
            self._state = CacheState.UNINITIALIZED
            self._pending = None
            logger.error(
                "handler_cache_failed",
                error=str(exc) or type(exc).__name__,
            )
            raise

        self._handler = handler
        self._state = CacheState.READY
        self._pending = None
        logger.info(
            "handler_cache_ready",
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return handler
