"""트렌딩 조회 뷰 - 점수 랭킹 결과를 캐시와 함께 제공"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional

from trend_collector.cache.cache_store import CacheKeys, CacheStore, CacheTTL
from trend_collector.models.record import CATEGORY_ALL, KIND_COMPETITION, ContentRecord
from trend_collector.scoring.trending_scorer import TrendingScorer, window_start
from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.clock import Clock, from_ms, now_ms
from trend_collector.utils.errors import ValidationError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 12
MAX_LIMIT = 50
DEFAULT_TIMEFRAME = "week"
TOP_CATEGORY_COUNT = 3


class TrendingView:
    """
    도메인별 트렌딩 목록.

    캐시 키: "<domain>:trending:<category>:<timeframe>:<limit>"
    TTL: day는 15분, week/month는 1시간.

    사용법:
        view = TrendingView("designs", store, cache)
        data = view.get("ui-ux", "week", 12)
    """

    def __init__(
        self,
        domain: str,
        store: DocumentStore,
        cache: CacheStore,
        scorer: Optional[TrendingScorer] = None,
        ttl: Optional[CacheTTL] = None,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        default_timeframe: str = DEFAULT_TIMEFRAME,
        clock: Optional[Clock] = None,
    ) -> None:
        self.domain = domain
        self._store = store
        self._cache = cache
        self._scorer = scorer or TrendingScorer()
        self._ttl = ttl or CacheTTL()
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.default_timeframe = default_timeframe
        self._clock: Clock = clock or now_ms

    def get(
        self,
        category: Optional[str] = None,
        timeframe: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        트렌딩 목록 조회 (캐시 우선).

        Raises:
            ValidationError: 잘못된 timeframe 또는 limit.
        """
        category = category or CATEGORY_ALL
        timeframe = timeframe or self.default_timeframe
        limit = self._validate_limit(limit)

        now = from_ms(self._clock())
        start = window_start(timeframe, now)

        key = CacheKeys.trending(self.domain, category, timeframe, limit)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        ranked = self._scorer.rank(self._candidates(category), now, start, limit)
        data = {
            "records": [self._serialize(r, now, start) for r in ranked],
            "stats": self._build_stats(ranked, timeframe, start),
            "categories": dict(Counter(r.category for r in ranked)),
            "filters": {"category": category, "timeframe": timeframe, "limit": limit},
            "generatedAt": now.isoformat(),
        }

        ttl_ms = self._ttl.trending_day if timeframe == "day" else self._ttl.long
        self._cache.set(key, data, ttl_ms)
        logger.debug("트렌딩 계산: %s/%s/%s → %d건", self.domain, category, timeframe, len(ranked))
        return data

    def refresh(self, categories: Iterable[str]) -> int:
        """
        트렌딩 캐시 무효화 후 기본 조회(default timeframe/limit)를 다시 계산.

        Returns:
            다시 계산한 뷰 수 (카테고리별 + all).
        """
        removed = self.invalidate()
        targets: List[str] = []
        for category in list(categories) + [CATEGORY_ALL]:
            if category not in targets:
                targets.append(category)

        for category in targets:
            self.get(category, self.default_timeframe, self.default_limit)

        logger.info("트렌딩 뷰 갱신: %s (무효화 %d건, 재계산 %d건)", self.domain, removed, len(targets))
        return len(targets)

    def invalidate(self) -> int:
        return self._cache.delete(f"{self.domain}:trending:*")

    # ===== 내부 =====

    def _validate_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("Invalid limit", {"limit": "must be an integer"})
        if limit < 1:
            raise ValidationError("Invalid limit", {"limit": "must be at least 1"})
        return min(limit, self.max_limit)

    def _candidates(self, category: str) -> List[ContentRecord]:
        filters: Dict[str, Any] = {}
        if category != CATEGORY_ALL:
            filters["category"] = category
        return self._store.find(predicate=self._is_listed, **filters)

    @staticmethod
    def _is_listed(record: ContentRecord) -> bool:
        """마감된(비활성) 공모전은 노출하지 않는다."""
        return record.kind != KIND_COMPETITION or record.is_active

    def _serialize(self, record: ContentRecord, now, start) -> Dict[str, Any]:
        data = record.to_dict()
        data["trending_score"] = round(self._scorer.score(record, now, start), 3)
        return data

    @staticmethod
    def _build_stats(ranked: List[ContentRecord], timeframe: str, start) -> Dict[str, Any]:
        total = len(ranked)
        top = Counter(r.category for r in ranked).most_common(TOP_CATEGORY_COUNT)
        if total:
            average = {
                "likes": round(sum(r.engagement.likes for r in ranked) / total, 2),
                "views": round(sum(r.engagement.views for r in ranked) / total, 2),
                "saves": round(sum(r.engagement.saves for r in ranked) / total, 2),
            }
        else:
            average = {"likes": 0, "views": 0, "saves": 0}
        return {
            "total": total,
            "timeframe": timeframe,
            "windowStart": start.isoformat(),
            "topCategories": [{"category": c, "count": n} for c, n in top],
            "averageEngagement": average,
        }
