"""Source Registry - 수집 소스 메타데이터 중앙 관리"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from trend_collector.models.source import ContentSource
from trend_collector.utils.config_manager import ConfigManager
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

VALID_INGESTION_TYPES = {"api", "rss"}


class SourceRegistry:
    """
    모든 수집 소스의 메타데이터 및 수집 정책 중앙 관리.

    - sources_registry.yaml에서 소스 로드
    - 종류(kind)/카테고리 기반 소스 선택 (priority 순)
    - 소스 상태(실패 횟수, 마지막 수집 시각) 런타임 관리

    사용법:
        config = ConfigManager()
        registry = SourceRegistry(config)
        sources = registry.select_sources(kind="design", category="ui-ux")
    """

    def __init__(self, config: Optional[ConfigManager] = None, sources: Optional[List[ContentSource]] = None) -> None:
        """
        Args:
            config: 설정 관리자. sources_registry.yaml을 읽는다.
            sources: 직접 주입할 소스 목록 (테스트용). 주어지면 설정 파일을 읽지 않는다.
        """
        self._config = config
        self._sources: Dict[str, ContentSource] = {}
        if sources is not None:
            for source in sources:
                self._sources[source.id] = source
        else:
            self._load()

    def _load(self) -> None:
        """sources_registry.yaml에서 소스 로드."""
        registry_data = self._config.get_file_config("sources_registry") if self._config else {}
        if not registry_data:
            logger.warning("sources_registry.yaml을 찾을 수 없습니다")
            return

        for source_id, source_data in registry_data.get("sources", {}).items():
            if "id" not in source_data:
                source_data["id"] = source_id
            source = ContentSource.from_dict(source_data)
            if source.ingestion_type not in VALID_INGESTION_TYPES:
                logger.warning("알 수 없는 수집 타입: %s (%s)", source.ingestion_type, source.id)
            self._sources[source.id] = source
            logger.debug(
                "소스 로드: %s (kind=%s, limiter=%s)",
                source.id, source.kind, source.rate_limit.strategy,
            )

        logger.info("소스 레지스트리 로드 완료: %d개 소스", len(self._sources))

    # ===== 단일 조회 =====

    def get(self, source_id: str) -> Optional[ContentSource]:
        """ID로 소스 조회."""
        return self._sources.get(source_id)

    # ===== 목록 조회 =====

    def get_all(self) -> List[ContentSource]:
        """전체 소스 목록."""
        return list(self._sources.values())

    def get_active_sources(self) -> List[ContentSource]:
        """활성 소스만 (enabled + is_active)."""
        return [s for s in self._sources.values() if s.enabled and s.is_active]

    def select_sources(
        self,
        kind: Optional[str] = None,
        category: Optional[str] = None,
        source_ids: Optional[List[str]] = None,
    ) -> List[ContentSource]:
        """
        조건 기반 소스 선택.

        Args:
            kind: 콘텐츠 종류 필터 ("design", "competition").
            category: 카테고리 필터 (카테고리 미지정 소스는 포함).
            source_ids: 특정 소스만 실행할 때의 ID 목록.

        Returns:
            조건에 맞는 활성 소스 목록 (priority 오름차순).
        """
        candidates = self.get_active_sources()

        if kind:
            candidates = [s for s in candidates if s.kind == kind]

        if category:
            candidates = [s for s in candidates if s.supports(category)]

        if source_ids:
            wanted = {sid.lower() for sid in source_ids}
            candidates = [s for s in candidates if s.id.lower() in wanted]

        candidates.sort(key=lambda s: (s.priority, s.id))
        return candidates

    # ===== 상태 관리 (런타임) =====

    def record_success(self, source_id: str) -> None:
        """수집 성공 기록."""
        source = self._sources.get(source_id)
        if source:
            now = datetime.now(timezone.utc)
            source.last_crawled = now
            source.last_success = now
            source.failure_count = 0
            logger.debug("소스 성공 기록: %s", source_id)

    def record_failure(self, source_id: str) -> None:
        """수집 실패 기록. 연속 실패 시 자동 비활성화."""
        source = self._sources.get(source_id)
        if not source:
            return
        source.last_crawled = datetime.now(timezone.utc)
        source.failure_count += 1
        logger.warning("소스 실패 기록: %s (연속 %d회)", source_id, source.failure_count)

        max_failures = 5
        if self._config:
            max_failures = self._config.get_int("source_management.max_consecutive_failures", 5)
        if source.failure_count >= max_failures:
            source.is_active = False
            logger.error("소스 자동 비활성화: %s (%d회 연속 실패)", source_id, source.failure_count)

    def reactivate(self, source_id: str) -> bool:
        """비활성화된 소스 재활성화."""
        source = self._sources.get(source_id)
        if source and source.enabled:
            source.is_active = True
            source.failure_count = 0
            logger.info("소스 재활성화: %s", source_id)
            return True
        return False

    # ===== 통계 =====

    @property
    def total_count(self) -> int:
        return len(self._sources)

    @property
    def active_count(self) -> int:
        return len(self.get_active_sources())

    def get_stats(self) -> Dict[str, Any]:
        """레지스트리 통계."""
        kind_counts: Dict[str, int] = {}
        type_counts: Dict[str, int] = {}

        for source in self._sources.values():
            kind_counts[source.kind] = kind_counts.get(source.kind, 0) + 1
            type_counts[source.ingestion_type] = type_counts.get(source.ingestion_type, 0) + 1

        return {
            "total": self.total_count,
            "active": self.active_count,
            "by_kind": kind_counts,
            "by_type": type_counts,
        }
