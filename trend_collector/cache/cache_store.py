"""TTL 캐시 - 계산된 조회 결과(트렌딩/목록/통계) 저장

만료는 get 시점에 판정한다 (lazy eviction). cleanup()은 메모리 정리용.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from trend_collector.utils.clock import Clock, isoformat, now_ms
from trend_collector.utils.config_manager import ConfigManager
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)


class CacheTTL:
    """TTL 프리셋 (ms)."""

    SHORT = 5 * 60 * 1000
    MEDIUM = 30 * 60 * 1000
    LONG = 60 * 60 * 1000
    VERY_LONG = 24 * 60 * 60 * 1000
    TRENDING_DAY = 15 * 60 * 1000

    def __init__(self, config: Optional[ConfigManager] = None) -> None:
        self.short = self.SHORT
        self.medium = self.MEDIUM
        self.long = self.LONG
        self.very_long = self.VERY_LONG
        self.trending_day = self.TRENDING_DAY
        if config:
            self.short = config.get_int("cache.ttl_ms.short", self.SHORT)
            self.medium = config.get_int("cache.ttl_ms.medium", self.MEDIUM)
            self.long = config.get_int("cache.ttl_ms.long", self.LONG)
            self.very_long = config.get_int("cache.ttl_ms.very_long", self.VERY_LONG)
            self.trending_day = config.get_int("cache.ttl_ms.trending_day", self.TRENDING_DAY)


class CacheKeys:
    """
    캐시 키 생성. 같은 조회 파라미터는 항상 같은 키.

    - 목록:   "<domain>:<category>:<JSON {query,sort,page,limit}>"
    - 트렌딩: "<domain>:trending:<category>:<timeframe>:<limit>"
    - 사용자: "<domain>:<userId>:..."
    - 통계:   "<domain>:statistics"
    """

    @staticmethod
    def listing(domain: str, category: str, query: str = "", sort: str = "latest", page: int = 1, limit: int = 20) -> str:
        params = json.dumps(
            {"query": query, "sort": sort, "page": page, "limit": limit},
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return f"{domain}:{category}:{params}"

    @staticmethod
    def trending(domain: str, category: str, timeframe: str, limit: int) -> str:
        return f"{domain}:trending:{category}:{timeframe}:{limit}"

    @staticmethod
    def user(domain: str, user_id: str, *parts: Any) -> str:
        return ":".join([domain, str(user_id)] + [str(p) for p in parts])

    @staticmethod
    def statistics(domain: str) -> str:
        return f"{domain}:statistics"


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float


class CacheStore:
    """
    프로세스 내 TTL 키/값 캐시.

    - set(key, value, ttl_ms): set 시각 + ttl_ms에 만료
    - get(key): 만료된 항목은 miss(None) 처리 후 삭제
    - delete(key_or_pattern): 정확한 키, 또는 '*' 글롭 패턴 일괄 삭제

    사용법:
        cache = CacheStore()
        cache.set(CacheKeys.statistics("designs"), stats, CacheTTL.LONG)
        cache.delete("designs:trending:*")
    """

    def __init__(self, default_ttl_ms: float = CacheTTL.MEDIUM, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or now_ms
        self._default_ttl_ms = default_ttl_ms
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            logger.debug("캐시 miss: %s", key)
            return None

        if self._clock() >= entry.expires_at:
            del self._entries[key]
            self._misses += 1
            logger.debug("캐시 만료: %s", key)
            return None

        self._hits += 1
        logger.debug("캐시 hit: %s", key)
        return entry.value

    def peek(self, key: str) -> Optional[Any]:
        """만료 처리와 hit/miss 집계 없이 조회 (상태 확인용)."""
        entry = self._entries.get(key)
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[float] = None) -> None:
        ttl = self._default_ttl_ms if ttl_ms is None else ttl_ms
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl)

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl_ms: Optional[float] = None) -> Any:
        """캐시 조회, miss면 factory() 결과를 저장 후 반환."""
        value = self.get(key)
        if value is not None:
            return value
        value = factory()
        self.set(key, value, ttl_ms)
        return value

    def delete(self, key_or_pattern: str) -> int:
        """
        키 또는 패턴 삭제.

        Args:
            key_or_pattern: "designs:statistics" (정확한 키) 또는
                "designs:u1:*" ('*'는 임의 문자열).

        Returns:
            삭제된 항목 수.
        """
        if "*" not in key_or_pattern:
            return 1 if self._entries.pop(key_or_pattern, None) is not None else 0

        matcher = self._compile(key_or_pattern)
        keys = [k for k in self._entries if matcher.match(k)]
        for key in keys:
            del self._entries[key]
        logger.debug("캐시 패턴 삭제: %s → %d건", key_or_pattern, len(keys))
        return len(keys)

    def delete_prefix(self, prefix: str) -> int:
        return self.delete(prefix + "*")

    @staticmethod
    def _compile(pattern: str) -> "re.Pattern[str]":
        parts = [re.escape(part) for part in pattern.split("*")]
        return re.compile("^" + ".*".join(parts) + "$", re.DOTALL)

    def keys(self, pattern: str = "*") -> List[str]:
        """만료되지 않은 키 목록."""
        now = self._clock()
        matcher = self._compile(pattern)
        return [k for k, e in self._entries.items() if now < e.expires_at and matcher.match(k)]

    def clear(self) -> None:
        self._entries.clear()
        logger.info("캐시 전체 삭제")

    def cleanup(self) -> int:
        """만료 항목 일괄 정리."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now >= e.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("만료 캐시 정리: %d건", len(expired))
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        next_expiry = min((e.expires_at for e in self._entries.values()), default=None)
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hitRate": round(self._hits / total, 3) if total else 0.0,
            "nextExpiry": isoformat(next_expiry),
        }
