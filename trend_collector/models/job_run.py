"""수집 작업 실행(JobRun) 데이터 모델"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(str, Enum):
    """스케줄러 상태. idle → running → {success, partial, failed} → idle"""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class CategoryStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    NOT_RUN = "not_run"


@dataclass
class CategoryResult:
    """카테고리 1개의 수집 결과."""

    category: str = ""
    status: CategoryStatus = CategoryStatus.NOT_RUN
    attempts: int = 0
    scraped: int = 0
    inserted: int = 0
    invalid: int = 0
    by_source: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "status": self.status.value,
            "attempts": self.attempts,
            "scraped": self.scraped,
            "inserted": self.inserted,
            "invalid": self.invalid,
            "bySource": self.by_source,
            "error": self.error,
        }


@dataclass
class JobRun:
    """
    작업 1회 실행 요약.

    트리거 시 생성되고 완료 시 확정된다. 가장 최근 실행만 보관.
    """

    job_id: str = ""
    domain: str = ""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    status: JobStatus = JobStatus.RUNNING
    category_results: List[CategoryResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    skipped: bool = False
    cancelled: bool = False
    message: str = ""
    duplicates_removed: int = 0
    trending_views_refreshed: int = 0

    @property
    def total_scraped(self) -> int:
        return sum(r.scraped for r in self.category_results)

    @property
    def categories_failed(self) -> int:
        return sum(1 for r in self.category_results if r.status == CategoryStatus.FAILED)

    @property
    def categories_processed(self) -> int:
        return sum(1 for r in self.category_results if r.status == CategoryStatus.SUCCESS)

    @property
    def execution_time_ms(self) -> Optional[int]:
        if self.started_at and self.finished_at:
            return int((self.finished_at - self.started_at).total_seconds() * 1000)
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "domain": self.domain,
            "status": self.status.value,
            "success": self.status in (JobStatus.SUCCESS, JobStatus.PARTIAL) or self.skipped,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "message": self.message,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "executionTimeMs": self.execution_time_ms,
            "categoriesProcessed": self.categories_processed,
            "categoriesFailed": self.categories_failed,
            "totalScraped": self.total_scraped,
            "duplicatesRemoved": self.duplicates_removed,
            "trendingViewsRefreshed": self.trending_views_refreshed,
            "categoryResults": [r.to_dict() for r in self.category_results],
            "errors": self.errors,
        }


@dataclass
class SchedulerState:
    """
    스케줄러 프로세스 상태.

    모듈 전역 변수 대신 JobScheduler가 소유하는 명시적 객체.
    테스트마다 독립 인스턴스를 만들 수 있다.
    """

    status: JobStatus = JobStatus.IDLE
    last_run_at_ms: Optional[float] = None
    last_run: Optional[JobRun] = None
    cancel_requested: bool = False
