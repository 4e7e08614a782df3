"""시각 유틸리티

내부 시각은 epoch 밀리초(float)로 다룬다. 레이트 리미터, 캐시, 스케줄러는
clock 함수를 주입받으므로 테스트에서 가상 시계로 교체할 수 있다.
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], float]


def now_ms() -> float:
    """현재 시각 (epoch ms)."""
    return time.time() * 1000


def from_ms(ms: Optional[float]) -> Optional[datetime]:
    """epoch ms → aware datetime (UTC)."""
    if ms is None:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """naive datetime은 UTC로 간주."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def isoformat(ms: Optional[float]) -> Optional[str]:
    dt = from_ms(ms)
    return dt.isoformat() if dt else None
