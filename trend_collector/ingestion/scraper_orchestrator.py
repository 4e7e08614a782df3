"""Scraper Orchestrator - 카테고리별 다중 소스 수집 + 재시도"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from trend_collector.ingestion.api_connector import ApiConnector
from trend_collector.ingestion.base_connector import BaseConnector
from trend_collector.ingestion.rss_connector import RssConnector
from trend_collector.models.record import ContentRecord
from trend_collector.models.source import ContentSource
from trend_collector.normalizer.record_normalizer import RecordNormalizer
from trend_collector.ratelimit.limiter_registry import RateLimiterRegistry
from trend_collector.ratelimit.rate_limiter import Sleep
from trend_collector.registry.source_registry import SourceRegistry
from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.clock import Clock, from_ms, now_ms
from trend_collector.utils.errors import (
    CategoryScrapeError,
    PipelineError,
    SourceFetchError,
    StoreUnavailableError,
)
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_MS = 2000
SCRAPER_TIMEOUT_MS = 9000
DEFAULT_LIMIT = 10


@dataclass
class ScrapeResult:
    """카테고리 1회 수집 결과."""

    category: str
    records: List[ContentRecord] = field(default_factory=list)
    per_source: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    invalid_count: int = 0
    inserted_count: int = 0
    attempts: int = 1

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def failed_sources(self) -> List[str]:
        return [source_id for source_id, entry in self.per_source.items() if not entry["success"]]


class ScraperOrchestrator:
    """
    카테고리 하나에 적용되는 모든 소스를 수집.

    - 소스마다 자기 레이트 리미터 슬롯 확보 후 fetch (소스 간 병렬)
    - 소스 하나의 실패는 다른 소스를 막지 않음
    - 유효 레코드는 저장소에 추가만 한다 (중복 제거/점수는 다음 단계)

    사용법:
        orchestrator = ScraperOrchestrator(registry, limiters, store, kind="design")
        result = await orchestrator.run_with_retry("ui-ux", {"limit": 10})
    """

    def __init__(
        self,
        registry: SourceRegistry,
        limiters: RateLimiterRegistry,
        store: DocumentStore,
        kind: str,
        connectors: Optional[Dict[str, BaseConnector]] = None,
        normalizer: Optional[RecordNormalizer] = None,
        default_limit: int = DEFAULT_LIMIT,
        max_retries: int = MAX_RETRIES,
        retry_delay_ms: float = RETRY_DELAY_MS,
        scraper_timeout_ms: float = SCRAPER_TIMEOUT_MS,
        api_credentials: Optional[Dict[str, str]] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        """
        Args:
            registry: 소스 레지스트리.
            limiters: 소스 이름 → 리미터 레지스트리.
            store: 레코드를 추가할 문서 저장소.
            kind: 수집 대상 콘텐츠 종류 ("design", "competition").
            connectors: 소스 ID → 커넥터 (미지정 소스는 ingestion_type으로 생성).
            api_credentials: {"source_id": "api_key"}
            clock: 현재 시각 함수 (epoch ms). 수집 시각(created_at) 기준.
            sleep: 재시도 대기 함수 (초 단위).
        """
        self._registry = registry
        self._limiters = limiters
        self._store = store
        self._kind = kind
        self._connectors: Dict[str, BaseConnector] = dict(connectors or {})
        self._normalizer = normalizer or RecordNormalizer()
        self._default_limit = default_limit
        self.max_retries = max(1, max_retries)
        self._retry_delay_ms = retry_delay_ms
        self._timeout_ms = scraper_timeout_ms
        self._api_credentials = api_credentials or {}
        self._clock: Clock = clock or now_ms
        self._sleep = sleep or asyncio.sleep

    # ===== 수집 =====

    async def run(
        self,
        category: str,
        options: Optional[Dict[str, Any]] = None,
        track_failures: bool = True,
    ) -> ScrapeResult:
        """
        카테고리 1회 수집.

        Args:
            category: 수집 카테고리.
            options: {"limit": int, "sources": [source_id, ...]}
            track_failures: 실패 소스를 레지스트리 연속 실패 횟수에 반영할지 여부.
                run_with_retry는 재시도가 끝난 뒤 한 번만 반영한다.

        Raises:
            CategoryScrapeError: 적용 가능한 모든 소스가 실패.
            StoreUnavailableError: 저장소 추가 실패.
        """
        options = options or {}
        limit = int(options.get("limit") or self._default_limit)
        sources = self._registry.select_sources(
            kind=self._kind, category=category, source_ids=options.get("sources"),
        )
        if not sources:
            suspended = {
                s.id: "source suspended after consecutive failures"
                for s in self._registry.get_all()
                if s.kind == self._kind and s.enabled and not s.is_active and s.supports(category)
            }
            if suspended and not options.get("sources"):
                raise CategoryScrapeError(category, suspended)
            logger.warning("수집 가능한 소스가 없습니다: %s", category)
            return ScrapeResult(category=category)

        per_source_limit = math.ceil(limit / len(sources))
        ingested_at = from_ms(self._clock())
        logger.info("카테고리 수집 시작: %s → %s", category, [s.id for s in sources])

        outcomes = await asyncio.gather(
            *(self._run_source(source, category, per_source_limit, ingested_at) for source in sources),
            return_exceptions=True,
        )

        result = ScrapeResult(category=category)
        source_errors: Dict[str, str] = {}
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                source_errors[source.id] = str(outcome) or outcome.__class__.__name__
                result.per_source[source.id] = {"success": False, "count": 0, "invalid": 0, "error": source_errors[source.id]}
                logger.error("소스 수집 실패: %s (%s) - %s", source.id, category, outcome)
                continue

            records, invalid = outcome
            result.records.extend(records)
            result.invalid_count += invalid
            result.per_source[source.id] = {"success": True, "count": len(records), "invalid": invalid, "error": None}
            self._registry.record_success(source.id)

        if track_failures:
            self._record_failures(source_errors)
        if len(source_errors) == len(sources):
            raise CategoryScrapeError(category, source_errors)

        result.inserted_count = self._persist(result.records)
        logger.info(
            "카테고리 수집 완료: %s → %d건 (제외 %d건, 실패 소스 %d개)",
            category, result.total, result.invalid_count, len(source_errors),
        )
        return result

    async def run_with_retry(self, category: str, options: Optional[Dict[str, Any]] = None) -> ScrapeResult:
        """
        run()을 최대 max_retries회 시도. 대기는 retry_delay * 2^attempt.

        검증 에러는 재시도하지 않는다. 마지막 실패는 그대로 전파.
        소스 실패는 카테고리 실행 1회당 한 번만 레지스트리에 반영한다.
        """
        last_error: Optional[PipelineError] = None
        for attempt in range(self.max_retries):
            try:
                logger.info("카테고리 수집: %s (시도 %d/%d)", category, attempt + 1, self.max_retries)
                result = await self.run(category, options, track_failures=False)
                result.attempts = attempt + 1
                self._record_failures(result.failed_sources)
                return result
            except PipelineError as e:
                if not e.retryable:
                    raise
                last_error = e
                logger.error("카테고리 수집 실패: %s (시도 %d) - %s", category, attempt + 1, e)

            if attempt < self.max_retries - 1:
                delay_ms = self._retry_delay_ms * (2 ** attempt)
                logger.info("%dms 후 재시도: %s", delay_ms, category)
                await self._sleep(delay_ms / 1000)

        if isinstance(last_error, CategoryScrapeError):
            self._record_failures(last_error.source_errors)
        raise last_error

    def _record_failures(self, source_ids) -> None:
        """실패 소스의 연속 실패 횟수 증가. 이미 정지된 소스는 제외."""
        for source_id in source_ids:
            source = self._registry.get(source_id)
            if source is not None and source.is_active:
                self._registry.record_failure(source_id)

    def reactivate_suspended(self) -> List[str]:
        """연속 실패로 정지된 소스를 다시 활성화. 재활성화된 소스 ID 반환."""
        reactivated = [
            s.id
            for s in self._registry.get_all()
            if s.kind == self._kind and s.enabled and not s.is_active and self._registry.reactivate(s.id)
        ]
        if reactivated:
            logger.info("정지된 소스 재활성화: %s", reactivated)
        return reactivated

    async def _run_source(
        self,
        source: ContentSource,
        category: str,
        limit: int,
        ingested_at: datetime,
    ) -> Tuple[List[ContentRecord], int]:
        """단일 소스: 리미터 대기 → 타임아웃 내 fetch → 정규화."""
        connector = self._get_connector(source)
        if connector is None:
            raise SourceFetchError(source.id, f"no connector for ingestion type '{source.ingestion_type}'")

        await self._limiters.get(source.id).acquire()

        try:
            items = await asyncio.wait_for(connector.fetch(category, limit), timeout=self._timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            logger.warning("%s 수집 타임아웃 (%dms)", source.id, self._timeout_ms)
            raise SourceFetchError(source.id, f"timeout after {self._timeout_ms:.0f}ms") from e

        if not isinstance(items, list):
            raise SourceFetchError(source.id, f"invalid result type: {type(items).__name__}")

        return self._normalizer.normalize_batch(items[:limit], source, category, ingested_at)

    def _persist(self, records: List[ContentRecord]) -> int:
        if not records:
            return 0
        try:
            return len(self._store.insert_many(records))
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(str(e), operation="insert") from e

    def _get_connector(self, source: ContentSource) -> Optional[BaseConnector]:
        """주입된 커넥터 우선, 없으면 수집 타입에 맞게 생성."""
        connector = self._connectors.get(source.id)
        if connector is not None:
            return connector

        if source.ingestion_type == "api":
            connector = ApiConnector(source, api_key=self._api_credentials.get(source.id, ""))
        elif source.ingestion_type == "rss":
            connector = RssConnector(source)
        else:
            logger.warning("알 수 없는 수집 타입: %s (%s)", source.ingestion_type, source.id)
            return None

        self._connectors[source.id] = connector
        return connector

    # ===== 상태 =====

    def get_status(self) -> Dict[str, Any]:
        """소스별 리미터 상태 및 설정."""
        sources = self._registry.select_sources(kind=self._kind)
        return {
            "kind": self._kind,
            "sources": [
                {
                    "name": s.id,
                    "enabled": s.enabled and s.is_active,
                    "priority": s.priority,
                    "failureCount": s.failure_count,
                    "rateLimiter": self._limiters.get(s.id).get_status() if s.id in self._limiters else None,
                }
                for s in sources
            ],
            "config": {
                "timeoutMs": self._timeout_ms,
                "maxRetries": self.max_retries,
                "retryDelayMs": self._retry_delay_ms,
                "defaultLimit": self._default_limit,
            },
        }
