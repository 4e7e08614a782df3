"""파이프라인 에러 정의

에러 종류(ErrorKind)는 에러 객체 자체에 태그로 실려 다닌다.
HTTP 상태 코드 선택, 재시도 여부 판단은 모두 kind 기준으로 분기한다.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """닫힌 에러 종류 집합."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    VALIDATION = "validation"
    TRANSIENT = "transient"
    FATAL = "fatal"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.VALIDATION: 400,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.FATAL: 500,
}


class PipelineError(Exception):
    """모든 파이프라인 에러의 베이스."""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        kind: Optional[ErrorKind] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details = details or {}

    @property
    def retryable(self) -> bool:
        """검증 에러를 제외한 모든 종류는 재시도 대상."""
        return self.kind != ErrorKind.VALIDATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.kind.value,
            "details": self.details or None,
        }


class ValidationError(PipelineError):
    """레코드/요청 검증 실패."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str = "Validation failed", errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message, details={"errors": errors or {}})
        self.errors = errors or {}


class NotFoundError(PipelineError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None) -> None:
        message = f"{resource} not found" if identifier is None else f"{resource} '{identifier}' not found"
        super().__init__(message, details={"resource": resource, "identifier": identifier})


class ConflictError(PipelineError):
    kind = ErrorKind.CONFLICT


class UnauthorizedError(PipelineError):
    kind = ErrorKind.UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class SourceFetchError(PipelineError):
    """단일 소스 수집 실패 (네트워크/타임아웃)."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, source: str, message: str = "Scraping failed") -> None:
        super().__init__(f"{source}: {message}", details={"source": source})
        self.source = source


class CategoryScrapeError(PipelineError):
    """카테고리 단위 수집 실패 (적용 가능한 모든 소스 실패)."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, category: str, source_errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(
            f"All sources failed for category '{category}'",
            details={"category": category, "sources": source_errors or {}},
        )
        self.category = category
        self.source_errors = source_errors or {}


class StoreUnavailableError(PipelineError):
    """문서 저장소 접근 불가. 현재 실행에 치명적."""

    kind = ErrorKind.FATAL

    def __init__(self, message: str = "Document store unavailable", operation: Optional[str] = None) -> None:
        super().__init__(message, details={"operation": operation})
        self.operation = operation


class RateLimitTimeout(PipelineError):
    """호출자가 요청한 대기 한도 안에 처리 슬롯을 얻지 못함."""

    kind = ErrorKind.TRANSIENT

    def __init__(self, limiter: str, timeout_ms: float) -> None:
        super().__init__(
            f"Rate limiter '{limiter}' timed out after {timeout_ms:.0f}ms",
            details={"limiter": limiter, "timeout_ms": timeout_ms},
        )


def http_status_for(kind: ErrorKind) -> int:
    """에러 종류 → HTTP 상태 코드."""
    return HTTP_STATUS_BY_KIND.get(kind, 500)


def describe(error: BaseException) -> Dict[str, Any]:
    """임의 예외를 JobRun.errors 항목 형태로 변환."""
    if isinstance(error, PipelineError):
        return error.to_dict()
    return {"message": str(error) or error.__class__.__name__, "code": ErrorKind.TRANSIENT.value, "details": None}
