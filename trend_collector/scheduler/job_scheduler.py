"""수집 작업 스케줄러 - 최소 간격, 수동 트리거, 카테고리 순차 실행

상태: idle → running → idle. 실행 결과(success / partial / failed)는 last_run에 남는다.
"""

import asyncio
import uuid
from typing import Any, Dict, List, Optional

from trend_collector.cache.cache_store import CacheKeys, CacheStore
from trend_collector.dedup.deduplicator import Deduplicator
from trend_collector.ingestion.scraper_orchestrator import ScraperOrchestrator
from trend_collector.models.job_run import (
    CategoryResult,
    CategoryStatus,
    JobRun,
    JobStatus,
    SchedulerState,
)
from trend_collector.ratelimit.rate_limiter import Sleep
from trend_collector.scheduler.statistics import build_statistics
from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.clock import Clock, from_ms, isoformat, now_ms
from trend_collector.utils.errors import NotFoundError, PipelineError, StoreUnavailableError, describe
from trend_collector.utils.logger import get_logger
from trend_collector.views.listing_view import ListingView
from trend_collector.views.trending_view import TrendingView

logger = get_logger(__name__)

MIN_INTERVAL_MS = 120 * 60 * 1000
CATEGORY_DELAY_MS = 1000
STATISTICS_TTL_MS = 60 * 60 * 1000


class JobScheduler:
    """
    도메인 하나(designs / competitions)의 수집 실행기.

    trigger() 1회 = 카테고리 순차 수집 → 중복 제거 → 트렌딩 뷰 갱신 →
    목록 캐시 무효화 → 통계 갱신.

    - 카테고리 실패는 JobRun.errors에 모으고 다음 카테고리로 진행
    - 저장소 장애(FATAL)는 실행 전체 실패. 이 경우에만 last_run_at을 갱신하지 않는다
    - 어떤 실패도 trigger() 밖으로 던지지 않는다. 태스크 취소는 상태를 idle로 되돌린 뒤 전파

    사용법:
        scheduler = JobScheduler("designs", orchestrator, store, cache, trending, listing, categories)
        run = await scheduler.trigger(force=True)
    """

    def __init__(
        self,
        domain: str,
        orchestrator: ScraperOrchestrator,
        store: DocumentStore,
        cache: CacheStore,
        trending_view: TrendingView,
        listing_view: ListingView,
        categories: List[str],
        deduplicator: Optional[Deduplicator] = None,
        limit_per_category: int = 10,
        min_interval_ms: float = MIN_INTERVAL_MS,
        category_delay_ms: float = CATEGORY_DELAY_MS,
        statistics_ttl_ms: float = STATISTICS_TTL_MS,
        next_run_ms: Optional[float] = None,
        enabled: bool = True,
        state: Optional[SchedulerState] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.domain = domain
        self._orchestrator = orchestrator
        self._store = store
        self._cache = cache
        self._trending_view = trending_view
        self._listing_view = listing_view
        self.categories = list(categories)
        self._deduplicator = deduplicator or Deduplicator(store)
        self._limit = limit_per_category
        self.min_interval_ms = min_interval_ms
        self._category_delay_ms = category_delay_ms
        self._statistics_ttl_ms = statistics_ttl_ms
        self._next_run_ms = next_run_ms if next_run_ms is not None else min_interval_ms
        self.enabled = enabled
        self.state = state or SchedulerState()
        self._clock: Clock = clock or now_ms
        self._sleep: Sleep = sleep or asyncio.sleep

    # ===== 트리거 =====

    async def trigger(
        self,
        category: Optional[str] = None,
        force: bool = False,
        timeout_ms: Optional[float] = None,
    ) -> JobRun:
        """
        수집 실행.

        Args:
            category: 지정 시 해당 카테고리만 실행.
            force: 최소 간격/비활성 설정 무시.
            timeout_ms: 실행 전체 제한 시간. 초과 시 진행 중 카테고리는 실패,
                남은 카테고리는 not_run.

        Returns:
            JobRun 요약 (skipped / success / partial / failed).
        """
        now = self._clock()

        if self.state.status == JobStatus.RUNNING:
            return self._skipped(now, f"{self.domain} scraping is already running")

        if not force and not self.enabled:
            return self._skipped(now, "Scraping is disabled")

        last = self.state.last_run_at_ms
        if not force and last is not None and now - last < self.min_interval_ms:
            next_at = last + self.min_interval_ms
            logger.info("최소 간격 미충족, 건너뜀: %s (다음 가능 %s)", self.domain, isoformat(next_at))
            return self._skipped(now, f"Last run was too recent. Next eligible run at {isoformat(next_at)}")

        if category is not None and category not in self.categories:
            job = self._new_job(now, [])
            job.errors.append(describe(NotFoundError("Category", category)))
            return self._finish(job, JobStatus.FAILED, mark_last_run=False)

        targets = [category] if category is not None else list(self.categories)
        job = self._new_job(now, targets)
        self.state.status = JobStatus.RUNNING
        self.state.cancel_requested = False
        logger.info("수집 작업 시작: %s %s (force=%s)", self.domain, job.job_id, force)
        self._orchestrator.reactivate_suspended()

        status = JobStatus.FAILED
        mark_last_run = True
        try:
            status = await self._run(job, targets, now, timeout_ms)
        except StoreUnavailableError as e:
            logger.error("저장소 장애로 작업 중단: %s - %s", self.domain, e)
            job.errors.append(describe(e))
            mark_last_run = False
        except asyncio.CancelledError:
            job.cancelled = True
            job.message = "Cancelled"
            status = JobStatus.PARTIAL if job.categories_processed else JobStatus.FAILED
            logger.warning("작업 태스크 취소: %s %s", self.domain, job.job_id)
            raise
        except Exception as e:
            logger.exception("작업 중 예기치 않은 오류: %s %s", self.domain, job.job_id)
            job.errors.append(describe(e))
            mark_last_run = False
        finally:
            self._finish(job, status, mark_last_run)

        return job

    async def _run(self, job: JobRun, targets: List[str], started: float, timeout_ms: Optional[float]) -> JobStatus:
        self._store.ping()
        deadline = started + timeout_ms if timeout_ms is not None else None

        for index, (category, result) in enumerate(zip(targets, job.category_results)):
            if self.state.cancel_requested or (deadline is not None and self._clock() >= deadline):
                job.cancelled = True
                logger.warning("작업 취소: %s, 남은 카테고리 %d개 미실행", self.domain, len(targets) - index)
                break

            if index > 0 and self._category_delay_ms:
                await self._sleep(self._category_delay_ms / 1000)

            if not await self._run_category(job, category, result, deadline):
                break

        # 중복 제거/점수는 멱등이므로 취소된 실행에서도 수행
        job.duplicates_removed = self._deduplicator.clean()
        job.trending_views_refreshed = self._trending_view.refresh(self.categories)
        self._listing_view.invalidate()
        self._update_statistics()

        succeeded = job.categories_processed
        if targets and succeeded == 0:
            return JobStatus.FAILED
        if succeeded < len(targets):
            return JobStatus.PARTIAL
        return JobStatus.SUCCESS

    async def _run_category(
        self,
        job: JobRun,
        category: str,
        result: CategoryResult,
        deadline: Optional[float],
    ) -> bool:
        """카테고리 1개 실행. 실행 계속 여부 반환. 저장소 장애는 전파."""
        coro = self._orchestrator.run_with_retry(category, {"limit": self._limit})
        try:
            if deadline is None:
                scraped = await coro
            else:
                remaining_ms = max(0.0, deadline - self._clock())
                scraped = await asyncio.wait_for(coro, timeout=remaining_ms / 1000)
        except asyncio.TimeoutError:
            result.status = CategoryStatus.FAILED
            result.error = "Cancelled: run timeout exceeded"
            job.cancelled = True
            job.errors.append({"category": category, "message": result.error, "code": "transient", "details": None})
            logger.warning("실행 제한 시간 초과: %s (%s)", self.domain, category)
            return False
        except asyncio.CancelledError:
            result.status = CategoryStatus.FAILED
            result.error = "Cancelled"
            raise
        except StoreUnavailableError as e:
            result.status = CategoryStatus.FAILED
            result.attempts = self._orchestrator.max_retries
            result.error = str(e)
            raise
        except PipelineError as e:
            self._fail_category(job, category, result, e)
            return True
        except Exception as e:
            logger.exception("카테고리 처리 중 예기치 않은 오류: %s (%s)", self.domain, category)
            self._fail_category(job, category, result, e)
            return True

        result.status = CategoryStatus.SUCCESS
        result.attempts = scraped.attempts
        result.scraped = scraped.total
        result.inserted = scraped.inserted_count
        result.invalid = scraped.invalid_count
        result.by_source = scraped.per_source
        logger.info("카테고리 완료: %s/%s → %d건", self.domain, category, scraped.total)
        return True

    def _fail_category(self, job: JobRun, category: str, result: CategoryResult, error: Exception) -> None:
        result.status = CategoryStatus.FAILED
        result.attempts = self._orchestrator.max_retries
        result.error = str(error)
        entry = describe(error)
        entry["category"] = category
        job.errors.append(entry)
        logger.error("카테고리 실패: %s/%s - %s", self.domain, category, error)

    def request_cancel(self) -> bool:
        """진행 중 실행에 취소 요청. 현재 카테고리가 끝난 뒤 멈춘다."""
        if self.state.status != JobStatus.RUNNING:
            return False
        self.state.cancel_requested = True
        logger.info("취소 요청: %s", self.domain)
        return True

    # ===== 통계/상태 =====

    def _update_statistics(self) -> Dict[str, Any]:
        stats = build_statistics(self._store, from_ms(self._clock()))
        self._cache.set(CacheKeys.statistics(self.domain), stats, self._statistics_ttl_ms)
        return stats

    def get_status(self) -> Dict[str, Any]:
        """상태 조회 (부작용 없음)."""
        last = self.state.last_run_at_ms
        return {
            "domain": self.domain,
            "enabled": self.enabled,
            "state": self.state.status.value,
            "lastRunAt": isoformat(last),
            "nextEligibleRunAt": isoformat(last + self.min_interval_ms) if last is not None else None,
            "nextRun": isoformat(last + self._next_run_ms) if last is not None else None,
            "lastRun": self.state.last_run.to_dict() if self.state.last_run else None,
            "statistics": self._cache.peek(CacheKeys.statistics(self.domain)),
            "categories": self.categories,
        }

    # ===== 내부 =====

    def _new_job(self, now: float, targets: List[str]) -> JobRun:
        return JobRun(
            job_id=uuid.uuid4().hex[:12],
            domain=self.domain,
            started_at=from_ms(now),
            status=JobStatus.RUNNING,
            category_results=[CategoryResult(category=c) for c in targets],
        )

    def _skipped(self, now: float, message: str) -> JobRun:
        run = JobRun(
            job_id=uuid.uuid4().hex[:12],
            domain=self.domain,
            started_at=from_ms(now),
            finished_at=from_ms(now),
            status=self.state.status,
            skipped=True,
            message=message,
        )
        logger.info("수집 건너뜀: %s - %s", self.domain, message)
        return run

    def _finish(self, job: JobRun, status: JobStatus, mark_last_run: bool = True) -> JobRun:
        """실행 결과 기록 후 idle 복귀. 저장소 장애로 끝난 실행은 last_run_at을 남기지 않는다."""
        finished = self._clock()
        job.status = status
        job.finished_at = from_ms(finished)
        if not job.message:
            job.message = (
                f"{job.categories_processed}/{len(job.category_results)} categories processed, "
                f"{job.total_scraped} records scraped"
            )

        if mark_last_run:
            self.state.last_run_at_ms = finished
        self.state.status = JobStatus.IDLE
        self.state.last_run = job
        self.state.cancel_requested = False

        log = logger.error if status == JobStatus.FAILED else logger.info
        log(
            "수집 작업 종료: %s %s → %s (성공 %d, 실패 %d, 수집 %d건, 중복 %d건, %dms)",
            self.domain, job.job_id, status.value, job.categories_processed,
            job.categories_failed, job.total_scraped, job.duplicates_removed,
            job.execution_time_ms or 0,
        )
        return job
