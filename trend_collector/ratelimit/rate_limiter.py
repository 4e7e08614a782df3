"""소스별 요청 속도 제한 (sliding window / token bucket)

용량이 없으면 거절하지 않고 대기(suspend)한다. 호출자가 timeout_ms를
명시한 경우에만 RateLimitTimeout을 던진다.
"""

import asyncio
import math
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

from trend_collector.utils.clock import Clock, isoformat, now_ms
from trend_collector.utils.errors import RateLimitTimeout
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# 리필 부동소수 오차 허용치
_TOKEN_EPSILON = 1e-9


class BaseRateLimiter(ABC):
    """모든 레이트 리미터의 추상 베이스."""

    def __init__(self, name: str, clock: Optional[Clock] = None, sleep: Optional[Sleep] = None) -> None:
        self.name = name
        self._clock: Clock = clock or now_ms
        self._sleep: Sleep = sleep or asyncio.sleep
        self._waiting = 0

    @abstractmethod
    async def acquire(self, timeout_ms: Optional[float] = None) -> None:
        """요청 슬롯 1개를 얻을 때까지 대기 후 예약."""
        ...

    @abstractmethod
    def can_make_request(self) -> bool:
        """상태를 바꾸지 않는 가용성 확인."""
        ...

    @abstractmethod
    def reset(self) -> None:
        ...

    @abstractmethod
    def get_status(self) -> Dict[str, Any]:
        ...

    async def execute(self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """슬롯 확보 후 코루틴 함수 실행."""
        await self.acquire()
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            logger.error("레이트 리미트 실행 중 오류: %s - %s", self.name, e)
            raise

    async def _wait(self, wait_ms: float) -> None:
        self._waiting += 1
        try:
            await self._sleep(wait_ms / 1000)
        finally:
            self._waiting -= 1


class SlidingWindowRateLimiter(BaseRateLimiter):
    """
    슬라이딩 윈도우: 최근 time_window_ms 안에 허용된 요청 시각을 보관.

    어떤 연속 time_window_ms 구간에서도 max_requests개를 넘는 요청이
    통과하지 않는다.
    """

    def __init__(
        self,
        max_requests: int = 10,
        time_window_ms: float = 60000,
        name: str = "default",
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        super().__init__(name, clock, sleep)
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.max_requests = max_requests
        self.time_window_ms = time_window_ms
        self._requests: Deque[float] = deque()
        logger.info(
            "레이트 리미터 초기화: %s (max=%d, window=%dms)",
            name, max_requests, time_window_ms,
        )

    def _prune(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.time_window_ms:
            self._requests.popleft()

    async def throttle(self, timeout_ms: Optional[float] = None) -> None:
        """
        슬롯이 생길 때까지 대기 후 예약.

        재귀 대신 반복. 각 대기는 가장 오래된 요청이 윈도우를 벗어나는
        시점까지이므로 대기 1회마다 슬롯이 최소 1개 풀린다.
        """
        started = self._clock()
        while True:
            now = self._clock()
            self._prune(now)

            if len(self._requests) < self.max_requests:
                self._requests.append(now)
                logger.debug(
                    "요청 허용: %s (%d/%d)", self.name, len(self._requests), self.max_requests,
                )
                return

            wait_ms = self.time_window_ms - (now - self._requests[0])
            if timeout_ms is not None and (now - started) + wait_ms > timeout_ms:
                raise RateLimitTimeout(self.name, timeout_ms)

            logger.debug("레이트 리밋 도달: %s, %.0fms 대기", self.name, wait_ms)
            await self._wait(wait_ms)

    async def acquire(self, timeout_ms: Optional[float] = None) -> None:
        await self.throttle(timeout_ms=timeout_ms)

    def _active_requests(self) -> int:
        now = self._clock()
        return sum(1 for t in self._requests if now - t < self.time_window_ms)

    def can_make_request(self) -> bool:
        return self._active_requests() < self.max_requests

    def reset(self) -> None:
        self._requests.clear()
        logger.info("레이트 리미터 초기화(reset): %s", self.name)

    def get_status(self) -> Dict[str, Any]:
        now = self._clock()
        active = [t for t in self._requests if now - t < self.time_window_ms]
        return {
            "name": self.name,
            "strategy": "sliding_window",
            "currentRequests": len(active),
            "maxRequests": self.max_requests,
            "timeWindow": self.time_window_ms,
            "waitingRequests": self._waiting,
            "availableRequests": max(0, self.max_requests - len(active)),
            "resetTime": isoformat(active[0] + self.time_window_ms) if active else None,
        }


class TokenBucketRateLimiter(BaseRateLimiter):
    """
    토큰 버킷: capacity까지 쌓이는 토큰을 refill_rate(토큰/초)로 보충.

    tokens는 음수가 되지 않는다.
    """

    def __init__(
        self,
        capacity: float = 100,
        refill_rate: float = 10,
        name: str = "token-bucket",
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        super().__init__(name, clock, sleep)
        if capacity <= 0 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self.tokens = float(capacity)
        self.last_refill_at = self._clock()
        logger.info(
            "토큰 버킷 초기화: %s (capacity=%s, refill=%s/s)",
            name, capacity, refill_rate,
        )

    def _refill(self) -> None:
        now = self._clock()
        elapsed_sec = max(0.0, (now - self.last_refill_at) / 1000)
        self.tokens = min(self.capacity, self.tokens + elapsed_sec * self.refill_rate)
        self.last_refill_at = now

    async def consume(self, tokens: float = 1, timeout_ms: Optional[float] = None) -> bool:
        """
        토큰 소비. 부족하면 필요한 만큼 리필될 때까지 대기 후 재시도.

        Raises:
            ValueError: capacity보다 많은 토큰 요청 (영원히 채워지지 않음).
        """
        if tokens > self.capacity:
            raise ValueError(f"cannot consume {tokens} tokens from bucket of capacity {self.capacity}")

        started = self._clock()
        while True:
            self._refill()
            if self.tokens + _TOKEN_EPSILON >= tokens:
                self.tokens = max(0.0, self.tokens - tokens)
                logger.debug("토큰 소비: %s (-%s, 남은 %.2f)", self.name, tokens, self.tokens)
                return True

            wait_ms = (tokens - self.tokens) / self.refill_rate * 1000
            if timeout_ms is not None and (self._clock() - started) + wait_ms > timeout_ms:
                raise RateLimitTimeout(self.name, timeout_ms)

            logger.debug("토큰 부족: %s, %.0fms 대기", self.name, wait_ms)
            # 대기 후 리필로 충분해진다. 동시 소비자가 먼저 가져간 경우에만 한 번 더 돈다.
            await self._wait(wait_ms)

    async def acquire(self, timeout_ms: Optional[float] = None) -> None:
        await self.consume(1, timeout_ms=timeout_ms)

    def can_make_request(self) -> bool:
        now = self._clock()
        elapsed_sec = max(0.0, (now - self.last_refill_at) / 1000)
        projected = min(self.capacity, self.tokens + elapsed_sec * self.refill_rate)
        return projected + _TOKEN_EPSILON >= 1

    def reset(self) -> None:
        self.tokens = self.capacity
        self.last_refill_at = self._clock()
        logger.info("토큰 버킷 초기화(reset): %s", self.name)

    def get_status(self) -> Dict[str, Any]:
        self._refill()
        available = math.floor(self.tokens + _TOKEN_EPSILON)
        capacity = math.floor(self.capacity)
        missing_ms = (self.capacity - self.tokens) / self.refill_rate * 1000
        return {
            "name": self.name,
            "strategy": "token_bucket",
            "currentRequests": max(0, capacity - available),
            "maxRequests": capacity,
            "availableRequests": available,
            "currentTokens": available,
            "capacity": self.capacity,
            "refillRate": self.refill_rate,
            "percentFull": (self.tokens / self.capacity) * 100,
            "waitingRequests": self._waiting,
            "resetTime": isoformat(self.last_refill_at + missing_ms) if missing_ms > 0 else None,
        }
