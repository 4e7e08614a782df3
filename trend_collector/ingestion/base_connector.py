"""수집 커넥터 베이스 클래스"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Union

from trend_collector.models.record import ContentRecord
from trend_collector.models.source import ContentSource


class BaseConnector(ABC):
    """
    모든 수집 커넥터의 추상 베이스.

    fetch는 소스 고유의 응답을 파싱해 원본 dict(또는 ContentRecord)
    목록을 돌려준다. 실패 시 예외를 던진다.
    """

    def __init__(self, source: ContentSource) -> None:
        self.source = source

    @abstractmethod
    async def fetch(self, category: str, limit: int = 10) -> List[Union[Dict[str, Any], ContentRecord]]:
        """소스에서 카테고리별 항목 수집."""
        ...


class CallableConnector(BaseConnector):
    """
    fetch(category, limit) 함수를 커넥터로 감싼다.

    동기 함수는 작업 스레드에서 실행한다. 이벤트 루프를 막지 않으므로
    오케스트레이터의 소스별 타임아웃이 동기 수집 함수에도 적용된다.
    """

    def __init__(
        self,
        source: ContentSource,
        fn: Callable[[str, int], Union[List[Any], Awaitable[List[Any]]]],
    ) -> None:
        super().__init__(source)
        self._fn = fn

    async def fetch(self, category: str, limit: int = 10) -> List[Union[Dict[str, Any], ContentRecord]]:
        if inspect.iscoroutinefunction(self._fn):
            return await self._fn(category, limit)
        result = await asyncio.to_thread(self._fn, category, limit)
        if inspect.isawaitable(result):
            result = await result
        return result
