"""트렌딩 점수 - 플랫폼 트렌딩 여부 + 반응 지표 + 최신성"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from dateutil.relativedelta import relativedelta

from trend_collector.models.record import ContentRecord
from trend_collector.utils.clock import ensure_aware
from trend_collector.utils.errors import ValidationError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

TRENDING_WEIGHT = 1000
LIKE_WEIGHT = 0.5
VIEW_WEIGHT = 0.01
SAVE_WEIGHT = 2
RECENCY_WEIGHT = 100

MIN_LIKES = 100

TIMEFRAMES = ("day", "week", "month")

_MIN_DATETIME = datetime.min.replace(tzinfo=timezone.utc)


def window_start(timeframe: str, now: datetime) -> datetime:
    """
    조회 기간 시작 시각.

    day = now - 1일, week = now - 7일, month = now - 1 달력월.

    Raises:
        ValidationError: 알 수 없는 기간.
    """
    if timeframe == "day":
        return now - timedelta(days=1)
    if timeframe == "week":
        return now - timedelta(days=7)
    if timeframe == "month":
        return now - relativedelta(months=1)
    raise ValidationError("Invalid timeframe", {"timeframe": f"must be one of {', '.join(TIMEFRAMES)}"})


class TrendingScorer:
    """
    트렌딩 점수 산출 및 랭킹. 저장 상태를 바꾸지 않는다.

    score = 1000 * 트렌딩 + 0.5 * likes + 0.01 * views + 2 * saves + 최신성 보너스
    최신성 보너스 = 100 * (published_at - window_start) / (now - window_start)
    (published_at이 window_start 이전이면 0)

    사용법:
        scorer = TrendingScorer()
        ranked = scorer.rank(records, now, window_start("week", now), limit=12)
    """

    def __init__(self, min_likes: int = MIN_LIKES) -> None:
        self.min_likes = min_likes

    def is_eligible(self, record: ContentRecord, window_start: datetime) -> bool:
        """플랫폼 트렌딩이거나, 기간 내 발행 + 좋아요 min_likes 이상."""
        if record.is_platform_trending:
            return True
        published = ensure_aware(record.published_at)
        return (
            published is not None
            and published >= window_start
            and record.engagement.likes >= self.min_likes
        )

    def score(self, record: ContentRecord, now: datetime, window_start: datetime) -> float:
        engagement = record.engagement
        value = (
            TRENDING_WEIGHT * (1 if record.is_platform_trending else 0)
            + LIKE_WEIGHT * engagement.likes
            + VIEW_WEIGHT * engagement.views
            + SAVE_WEIGHT * engagement.saves
        )
        return value + self._recency_bonus(record, now, window_start)

    @staticmethod
    def _recency_bonus(record: ContentRecord, now: datetime, window_start: datetime) -> float:
        published = ensure_aware(record.published_at)
        if published is None or published < window_start:
            return 0.0
        span = (now - window_start).total_seconds()
        if span <= 0:
            return 0.0
        return RECENCY_WEIGHT * max(0.0, (published - window_start).total_seconds() / span)

    def rank(
        self,
        records: Iterable[ContentRecord],
        now: datetime,
        window_start: datetime,
        limit: Optional[int] = None,
    ) -> List[ContentRecord]:
        """
        적격 레코드만 점수 내림차순 정렬 (동점은 created_at 최신 우선).

        부적격 레코드는 0점이 아니라 결과에서 제외된다.
        """
        records = list(records)
        scored = [
            (self.score(r, now, window_start), r)
            for r in records
            if self.is_eligible(r, window_start)
        ]
        # 안정 정렬 2회: 보조 키(created_at desc) → 주 키(score desc)
        scored.sort(key=lambda pair: ensure_aware(pair[1].created_at) or _MIN_DATETIME, reverse=True)
        scored.sort(key=lambda pair: pair[0], reverse=True)

        ranked = [r for _, r in scored]
        logger.debug("트렌딩 랭킹: 대상 %d건 → 적격 %d건", len(records), len(ranked))
        return ranked[:limit] if limit is not None else ranked

    def rank_with_scores(self, records: Iterable[ContentRecord], now: datetime, window_start: datetime) -> List[dict]:
        """랭킹 결과 + 점수 (응답용 dict)."""
        result = []
        for record in self.rank(records, now, window_start):
            data = record.to_dict()
            data["trending_score"] = round(self.score(record, now, window_start), 3)
            result.append(data)
        return result
