"""목록 조회 뷰 - 카테고리/검색/정렬/페이지네이션 + 캐시"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from trend_collector.cache.cache_store import CacheKeys, CacheStore, CacheTTL
from trend_collector.models.record import CATEGORY_ALL, KIND_COMPETITION, ContentRecord
from trend_collector.scoring.trending_scorer import TrendingScorer, window_start
from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.clock import Clock, ensure_aware, from_ms, now_ms
from trend_collector.utils.errors import ValidationError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

SORT_LATEST = "latest"
SORT_POPULAR = "popular"
SORT_TRENDING = "trending"
VALID_SORTS = (SORT_LATEST, SORT_POPULAR, SORT_TRENDING)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

_MIN_DATETIME = datetime.min.replace(tzinfo=timezone.utc)


class ListingView:
    """
    페이지 단위 목록.

    캐시 키: "<domain>:<category>:<JSON {query,sort,page,limit}>", TTL MEDIUM.
    쓰기(수집 완료, 사용자 북마크 등) 후 invalidate*로 관련 키를 지운다.
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
        clock: Optional[Clock] = None,
    ) -> None:
        self.domain = domain
        self._store = store
        self._cache = cache
        self._scorer = scorer or TrendingScorer()
        self._ttl = ttl or CacheTTL()
        self.default_limit = default_limit
        self.max_limit = max_limit
        self._clock: Clock = clock or now_ms

    def get(
        self,
        category: Optional[str] = None,
        query: str = "",
        sort: str = SORT_LATEST,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        목록 조회 (캐시 우선).

        Raises:
            ValidationError: 잘못된 sort/page/limit.
        """
        category = category or CATEGORY_ALL
        query = (query or "").strip()
        sort = sort or SORT_LATEST
        if sort not in VALID_SORTS:
            raise ValidationError("Invalid sort", {"sort": f"must be one of {', '.join(VALID_SORTS)}"})
        page = self._positive_int("page", page, 1)
        limit = min(self._positive_int("limit", limit, self.default_limit), self.max_limit)

        key = CacheKeys.listing(self.domain, category, query, sort, page, limit)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        records = self._sorted(self._filter(category, query), sort)
        total = len(records)
        pages = math.ceil(total / limit) if total else 0
        offset = (page - 1) * limit

        data = {
            "records": [r.to_dict() for r in records[offset:offset + limit]],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": pages,
                "hasMore": page < pages,
            },
            "filters": {"category": category, "query": query, "sort": sort},
        }
        self._cache.set(key, data, self._ttl.medium)
        return data

    def invalidate(self) -> int:
        """도메인 목록 캐시 전체 삭제."""
        removed = self._cache.delete(f"{self.domain}:*:{{*")
        logger.debug("목록 캐시 무효화: %s → %d건", self.domain, removed)
        return removed

    def invalidate_user(self, user_id: str) -> int:
        """사용자별 캐시 ("<domain>:<userId>:...") 삭제."""
        return self._cache.delete(CacheKeys.user(self.domain, user_id, "*"))

    # ===== 내부 =====

    @staticmethod
    def _positive_int(name: str, value: Any, default: int) -> int:
        if value is None or value == "":
            return default
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {name}", {name: "must be an integer"})
        if value < 1:
            raise ValidationError(f"Invalid {name}", {name: "must be at least 1"})
        return value

    def _filter(self, category: str, query: str) -> List[ContentRecord]:
        filters: Dict[str, Any] = {}
        if category != CATEGORY_ALL:
            filters["category"] = category
        needle = query.lower()

        def matches(record: ContentRecord) -> bool:
            if record.kind == KIND_COMPETITION and not record.is_active:
                return False
            if not needle:
                return True
            return (
                needle in record.title.lower()
                or needle in record.description.lower()
                or any(needle in tag for tag in record.tags)
            )

        return self._store.find(predicate=matches, **filters)

    def _sorted(self, records: List[ContentRecord], sort: str) -> List[ContentRecord]:
        if sort == SORT_POPULAR:
            return sorted(
                records,
                key=lambda r: (r.engagement.likes, r.engagement.saves, r.engagement.views),
                reverse=True,
            )
        if sort == SORT_TRENDING:
            now = from_ms(self._clock())
            start = window_start("week", now)
            return sorted(records, key=lambda r: self._scorer.score(r, now, start), reverse=True)
        return sorted(
            records,
            key=lambda r: (ensure_aware(r.published_at) or _MIN_DATETIME, ensure_aware(r.created_at) or _MIN_DATETIME),
            reverse=True,
        )
