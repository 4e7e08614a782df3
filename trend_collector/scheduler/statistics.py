"""수집 통계 집계"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict

from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.clock import ensure_aware

RECENT_HOURS = 24


def build_statistics(store: DocumentStore, now: datetime, recent_hours: int = RECENT_HOURS) -> Dict[str, Any]:
    """
    저장소 전체 집계.

    Returns:
        {"total", "trending", "recentlyAdded", "byCategory", "bySource", "generatedAt"}
    """
    records = store.find()
    recent_since = now - timedelta(hours=recent_hours)

    recent = 0
    for record in records:
        created = ensure_aware(record.created_at)
        if created is not None and created >= recent_since:
            recent += 1

    return {
        "total": len(records),
        "trending": sum(1 for r in records if r.is_platform_trending),
        "recentlyAdded": recent,
        "byCategory": dict(Counter(r.category for r in records)),
        "bySource": dict(Counter(r.source_platform for r in records)),
        "generatedAt": now.isoformat(),
    }
