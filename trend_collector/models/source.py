"""수집 소스 데이터 모델"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

STRATEGY_SLIDING_WINDOW = "sliding_window"
STRATEGY_TOKEN_BUCKET = "token_bucket"


@dataclass
class RateLimitPolicy:
    """소스별 요청 제한 정책."""

    strategy: str = STRATEGY_SLIDING_WINDOW  # "sliding_window", "token_bucket"

    # sliding window
    max_requests: int = 10
    time_window_ms: int = 60000

    # token bucket
    capacity: float = 100.0
    refill_rate: float = 10.0  # tokens / sec

    @classmethod
    def from_dict(cls, data: Dict) -> "RateLimitPolicy":
        return cls(
            strategy=data.get("strategy", STRATEGY_SLIDING_WINDOW),
            max_requests=int(data.get("max_requests", 10)),
            time_window_ms=int(data.get("time_window_ms", 60000)),
            capacity=float(data.get("capacity", 100)),
            refill_rate=float(data.get("refill_rate", 10)),
        )


@dataclass
class ContentSource:
    """수집 소스(플랫폼) 메타데이터."""

    # 식별자
    id: str = ""
    name: str = ""
    kind: str = "design"  # "design", "competition"

    # 수집 방식
    ingestion_type: str = "api"  # "api", "rss"
    base_url: str = ""
    supported_categories: List[str] = field(default_factory=list)
    user_agent: str = "TrendCollector/1.0"

    # 실행 순서 / 활성화
    priority: int = 1
    enabled: bool = True

    # Rate Limiting
    rate_limit: RateLimitPolicy = field(default_factory=RateLimitPolicy)

    # 상태 (런타임)
    is_active: bool = True
    last_crawled: Optional[datetime] = None
    last_success: Optional[datetime] = None
    failure_count: int = 0

    def supports(self, category: Optional[str]) -> bool:
        """카테고리 미지정 소스는 모든 카테고리에 적용."""
        if not category or not self.supported_categories:
            return True
        return category in self.supported_categories

    @classmethod
    def from_dict(cls, data: Dict) -> "ContentSource":
        """딕셔너리에서 ContentSource 생성."""
        return cls(
            id=data.get("id", ""),
            name=data.get("name", data.get("id", "")),
            kind=data.get("kind", "design"),
            ingestion_type=data.get("ingestion_type", "api"),
            base_url=data.get("base_url", ""),
            supported_categories=list(data.get("supported_categories", [])),
            user_agent=data.get("user_agent", "TrendCollector/1.0"),
            priority=int(data.get("priority", 1)),
            enabled=data.get("enabled", True),
            rate_limit=RateLimitPolicy.from_dict(data.get("rate_limit", {})),
            is_active=data.get("is_active", True),
            failure_count=data.get("failure_count", 0),
        )
