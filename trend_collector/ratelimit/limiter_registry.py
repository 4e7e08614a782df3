"""소스 이름 → 레이트 리미터 레지스트리"""

from typing import Any, Dict, Iterator, Optional

from trend_collector.models.source import STRATEGY_TOKEN_BUCKET, RateLimitPolicy
from trend_collector.ratelimit.rate_limiter import (
    BaseRateLimiter,
    Sleep,
    SlidingWindowRateLimiter,
    TokenBucketRateLimiter,
)
from trend_collector.registry.source_registry import SourceRegistry
from trend_collector.utils.clock import Clock
from trend_collector.utils.errors import NotFoundError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)


def create_limiter(
    policy: RateLimitPolicy,
    name: str,
    clock: Optional[Clock] = None,
    sleep: Optional[Sleep] = None,
) -> BaseRateLimiter:
    """정책에 맞는 리미터 생성."""
    if policy.strategy == STRATEGY_TOKEN_BUCKET:
        return TokenBucketRateLimiter(policy.capacity, policy.refill_rate, name=name, clock=clock, sleep=sleep)
    return SlidingWindowRateLimiter(policy.max_requests, policy.time_window_ms, name=name, clock=clock, sleep=sleep)


class RateLimiterRegistry:
    """
    소스별로 독립된 리미터 인스턴스를 보관.

    오케스트레이터 초기화 시 한 번 만들고 참조로 전달한다.
    소스 간 상태 공유 없음.

    사용법:
        limiters = RateLimiterRegistry.from_sources(source_registry)
        await limiters.get("behance").acquire()
    """

    def __init__(self) -> None:
        self._limiters: Dict[str, BaseRateLimiter] = {}

    @classmethod
    def from_sources(
        cls,
        registry: SourceRegistry,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> "RateLimiterRegistry":
        limiters = cls()
        for source in registry.get_all():
            limiters.register(source.id, create_limiter(source.rate_limit, source.id, clock, sleep))
        return limiters

    def register(self, name: str, limiter: BaseRateLimiter) -> None:
        if name in self._limiters:
            logger.warning("리미터 덮어쓰기: %s", name)
        self._limiters[name] = limiter

    def get(self, name: str) -> BaseRateLimiter:
        limiter = self._limiters.get(name)
        if limiter is None:
            raise NotFoundError("Rate limiter", name)
        return limiter

    def __contains__(self, name: str) -> bool:
        return name in self._limiters

    def __iter__(self) -> Iterator[str]:
        return iter(self._limiters)

    def reset_all(self) -> None:
        for limiter in self._limiters.values():
            limiter.reset()
        logger.info("전체 리미터 초기화: %d개", len(self._limiters))

    def statuses(self) -> Dict[str, Dict[str, Any]]:
        return {name: limiter.get_status() for name, limiter in self._limiters.items()}
