"""파이프라인 조립 - 설정에서 레지스트리, 리미터, 저장소, 캐시, 뷰, 스케줄러 구성"""

import os
from typing import Any, Dict, Optional

from trend_collector.cache.cache_store import CacheStore, CacheTTL
from trend_collector.dedup.deduplicator import Deduplicator
from trend_collector.ingestion.base_connector import BaseConnector
from trend_collector.ingestion.scraper_orchestrator import ScraperOrchestrator
from trend_collector.maintenance.retention_cleaner import RetentionCleaner
from trend_collector.models.record import KIND_COMPETITION, KIND_DESIGN
from trend_collector.normalizer.record_normalizer import RecordNormalizer
from trend_collector.ratelimit.limiter_registry import RateLimiterRegistry
from trend_collector.ratelimit.rate_limiter import Sleep
from trend_collector.registry.source_registry import SourceRegistry
from trend_collector.scheduler.job_scheduler import JobScheduler
from trend_collector.scoring.trending_scorer import TrendingScorer
from trend_collector.storage.document_store import DocumentStore, InMemoryDocumentStore
from trend_collector.utils.clock import Clock
from trend_collector.utils.config_manager import ConfigManager
from trend_collector.utils.errors import NotFoundError
from trend_collector.utils.logger import get_logger
from trend_collector.views.listing_view import ListingView
from trend_collector.views.trending_view import TrendingView

logger = get_logger(__name__)

DOMAINS = ("designs", "competitions")
DEFAULT_KINDS = {"designs": KIND_DESIGN, "competitions": KIND_COMPETITION}


class Pipeline:
    """
    전체 구성 요소를 한 번 만들어 보관.

    사용법:
        pipeline = Pipeline()
        run = await pipeline.scheduler("designs").trigger(force=True)
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        connectors: Optional[Dict[str, BaseConnector]] = None,
        stores: Optional[Dict[str, DocumentStore]] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        """
        Args:
            config: 설정 관리자 (None이면 패키지 기본 설정).
            connectors: 소스 ID → 커넥터. 미지정 소스는 api/rss 커넥터 사용.
            stores: 도메인 → 문서 저장소. 미지정 도메인은 인메모리 저장소.
            clock: 현재 시각 함수 (epoch ms).
            sleep: 대기 함수 (초).
        """
        self.config = config or ConfigManager()
        stores = stores or {}

        self.registry = SourceRegistry(self.config)
        self.limiters = RateLimiterRegistry.from_sources(self.registry, clock=clock, sleep=sleep)
        self.ttl = CacheTTL(self.config)
        self.cache = CacheStore(default_ttl_ms=self.ttl.medium, clock=clock)
        self.scorer = TrendingScorer(min_likes=self.config.get_int("trending.min_likes", 100))
        self.enabled = self._scraping_enabled()

        normalizer = RecordNormalizer()
        api_credentials = self._api_credentials()

        self.stores: Dict[str, DocumentStore] = {}
        self.trending_views: Dict[str, TrendingView] = {}
        self.listing_views: Dict[str, ListingView] = {}
        self.schedulers: Dict[str, JobScheduler] = {}

        for domain in DOMAINS:
            section = self.config.get(f"domains.{domain}", {}) or {}
            kind = section.get("kind", DEFAULT_KINDS[domain])
            store = stores.get(domain)
            if store is None:
                store = InMemoryDocumentStore(domain)
            self.stores[domain] = store

            self.trending_views[domain] = TrendingView(
                domain, store, self.cache, self.scorer, self.ttl,
                default_limit=self.config.get_int("trending.default_limit", 12),
                max_limit=self.config.get_int("trending.max_limit", 50),
                default_timeframe=self.config.get("trending.default_timeframe", "week"),
                clock=clock,
            )
            self.listing_views[domain] = ListingView(
                domain, store, self.cache, self.scorer, self.ttl,
                default_limit=self.config.get_int("listing.default_limit", 20),
                max_limit=self.config.get_int("listing.max_limit", 100),
                clock=clock,
            )

            orchestrator = ScraperOrchestrator(
                self.registry, self.limiters, store, kind,
                connectors=connectors,
                normalizer=normalizer,
                default_limit=self.config.get_int(f"domains.{domain}.limit_per_category", 10),
                max_retries=self.config.get_int("scraping.max_retries", 3),
                retry_delay_ms=self.config.get_int(f"domains.{domain}.retry_delay_ms", 2000),
                scraper_timeout_ms=self.config.get_int("scraping.scraper_timeout_ms", 9000),
                api_credentials=api_credentials,
                clock=clock,
                sleep=sleep,
            )
            self.schedulers[domain] = JobScheduler(
                domain, orchestrator, store, self.cache,
                self.trending_views[domain], self.listing_views[domain],
                categories=section.get("categories", []),
                deduplicator=Deduplicator(store),
                limit_per_category=self.config.get_int(f"domains.{domain}.limit_per_category", 10),
                min_interval_ms=self.config.get_int(f"domains.{domain}.min_interval_minutes", 120) * 60 * 1000,
                category_delay_ms=self.config.get_int(f"domains.{domain}.category_delay_ms", 1000),
                statistics_ttl_ms=self.config.get_int("cache.statistics_ttl_ms", 3600000),
                next_run_ms=self.config.get_int(f"domains.{domain}.next_run_hours", 3) * 60 * 60 * 1000,
                enabled=self.enabled,
                clock=clock,
                sleep=sleep,
            )

        self.cleaner = RetentionCleaner(
            self.stores["designs"], self.stores["competitions"],
            config=self.config, on_change=self.invalidate_views, clock=clock,
        )
        logger.info(
            "파이프라인 구성 완료: 소스 %d개, 도메인 %s, 수집 %s",
            self.registry.total_count, list(self.schedulers), "활성" if self.enabled else "비활성",
        )

    def scheduler(self, domain: str) -> JobScheduler:
        if domain not in self.schedulers:
            raise NotFoundError("Domain", domain)
        return self.schedulers[domain]

    def invalidate_views(self, domain: str) -> None:
        """도메인의 트렌딩/목록 캐시 삭제."""
        self.trending_views[domain].invalidate()
        self.listing_views[domain].invalidate()

    def close(self) -> None:
        """도메인 저장소 연결 해제."""
        for store in self.stores.values():
            store.close()

    def get_status(self) -> Dict[str, Any]:
        return {
            "scrapingEnabled": self.enabled,
            "schedulers": {domain: s.get_status() for domain, s in self.schedulers.items()},
            "sources": self.registry.get_stats(),
            "rateLimiters": self.limiters.statuses(),
            "cache": self.cache.get_stats(),
        }

    def _scraping_enabled(self) -> bool:
        """SCRAPING_ENABLED 환경변수 우선, 없으면 scraping.enabled."""
        env_value = os.environ.get("SCRAPING_ENABLED")
        if env_value is not None:
            return env_value.strip().lower() in ("true", "1", "yes", "on")
        return self.config.get_bool("scraping.enabled", True)

    def _api_credentials(self) -> Dict[str, str]:
        """<SOURCE_ID>_API_KEY 환경변수에서 API 키 수집."""
        credentials = {}
        for source in self.registry.get_all():
            key = os.environ.get(f"{source.id.upper()}_API_KEY")
            if key:
                credentials[source.id] = key
        return credentials
