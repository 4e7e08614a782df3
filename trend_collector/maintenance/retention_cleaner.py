"""보관 기간 정리 - 마감 공모전 비활성화, 오래된 레코드 삭제"""

from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.clock import Clock, ensure_aware, from_ms, now_ms
from trend_collector.utils.config_manager import ConfigManager
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

DESIGN_RETENTION_DAYS = 60
DESIGN_MIN_SAVES = 5
COMPETITION_RETENTION_DAYS = 90
EXPIRED_COMPETITION_GRACE_DAYS = 7


class RetentionCleaner:
    """
    일 1회 정리 작업.

    1. 마감 후 7일 지난 활성 공모전 → 비활성화
    2. 90일 동안 갱신 없는 비활성 공모전 → 삭제
    3. 60일 지난 디자인 중 트렌딩 아니고 저장 5회 미만 → 삭제

    변경이 생긴 도메인은 on_change(domain)으로 캐시 무효화를 알린다.
    """

    def __init__(
        self,
        design_store: DocumentStore,
        competition_store: DocumentStore,
        config: Optional[ConfigManager] = None,
        on_change: Optional[Callable[[str], None]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._design_store = design_store
        self._competition_store = competition_store
        self._on_change = on_change
        self._clock: Clock = clock or now_ms

        self.design_retention_days = DESIGN_RETENTION_DAYS
        self.design_min_saves = DESIGN_MIN_SAVES
        self.competition_retention_days = COMPETITION_RETENTION_DAYS
        self.grace_days = EXPIRED_COMPETITION_GRACE_DAYS
        if config:
            self.design_retention_days = config.get_int("retention.design_retention_days", DESIGN_RETENTION_DAYS)
            self.design_min_saves = config.get_int("retention.design_min_saves", DESIGN_MIN_SAVES)
            self.competition_retention_days = config.get_int(
                "retention.competition_retention_days", COMPETITION_RETENTION_DAYS
            )
            self.grace_days = config.get_int("retention.expired_competition_grace_days", EXPIRED_COMPETITION_GRACE_DAYS)

    def run(self) -> Dict[str, Any]:
        started = self._clock()
        now = from_ms(started)
        logger.info("보관 기간 정리 시작")

        # 1. 마감 공모전 비활성화
        expired_before = now - timedelta(days=self.grace_days)
        expired = self._competition_store.find(
            predicate=lambda r: r.deadline is not None and ensure_aware(r.deadline) < expired_before,
            is_active=True,
        )
        deactivated = self._competition_store.update_by_ids(
            [r.id for r in expired], {"is_active": False, "updated_at": now},
        )

        # 2. 오래된 비활성 공모전 삭제
        stale_before = now - timedelta(days=self.competition_retention_days)
        stale = self._competition_store.find(
            predicate=lambda r: (ensure_aware(r.updated_at or r.created_at) or now) < stale_before,
            is_active=False,
        )
        competitions_deleted = self._competition_store.delete_by_ids([r.id for r in stale])

        # 3. 오래된 저인기 디자인 삭제
        design_before = now - timedelta(days=self.design_retention_days)
        old_designs = self._design_store.find(
            predicate=lambda r: (
                (ensure_aware(r.created_at) or now) < design_before
                and not r.is_platform_trending
                and r.engagement.saves < self.design_min_saves
            ),
        )
        designs_deleted = self._design_store.delete_by_ids([r.id for r in old_designs])

        if self._on_change:
            if deactivated or competitions_deleted:
                self._on_change("competitions")
            if designs_deleted:
                self._on_change("designs")

        summary = {
            "competitionsDeactivated": deactivated,
            "competitionsDeleted": competitions_deleted,
            "designsDeleted": designs_deleted,
            "executionTimeMs": int(self._clock() - started),
        }
        logger.info(
            "보관 기간 정리 완료: 공모전 비활성화 %d건, 공모전 삭제 %d건, 디자인 삭제 %d건",
            deactivated, competitions_deleted, designs_deleted,
        )
        return summary
