"""중복 레코드 정리 - source_url 기준, 먼저 수집된 것 우선"""

from datetime import datetime, timezone
from typing import Dict, List, Tuple

from trend_collector.models.record import ContentRecord
from trend_collector.storage.document_store import DocumentStore
from trend_collector.utils.errors import StoreUnavailableError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class Deduplicator:
    """
    저장소 전체를 source_url로 묶어 그룹마다 가장 오래된 레코드만 남긴다.

    정렬 키: (created_at 오름차순, seq 오름차순).
    created_at이 같으면 저장소 삽입 순번(seq)이 작은 쪽이 남는다.
    이미 정리된 저장소에서 다시 실행하면 0건 삭제 (멱등).
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def clean(self) -> int:
        """
        중복 삭제.

        Returns:
            삭제된 레코드 수.

        Raises:
            StoreUnavailableError: 저장소 조회/삭제 실패.
        """
        try:
            groups = self._store.group_by("source_url")
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(str(e), operation="group_by") from e

        to_delete: List[str] = []
        duplicate_groups = 0
        for source_url, records in groups.items():
            if len(records) < 2:
                continue
            duplicate_groups += 1
            ordered = sorted(records, key=self._sort_key)
            to_delete.extend(r.id for r in ordered[1:])
            logger.debug("중복 그룹: %s (%d건 → 1건)", source_url, len(records))

        if not to_delete:
            logger.info("중복 없음 (그룹 %d개)", len(groups))
            return 0

        try:
            removed = self._store.delete_by_ids(to_delete)
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(str(e), operation="delete") from e

        logger.info("중복 제거 완료: 그룹 %d개, %d건 삭제", duplicate_groups, removed)
        return removed

    @staticmethod
    def _sort_key(record: ContentRecord) -> Tuple[datetime, int]:
        return (record.created_at or _EPOCH, record.seq)

    def find_duplicates(self) -> Dict[str, int]:
        """source_url → 레코드 수 (2건 이상인 그룹만). 삭제하지 않는다."""
        return {
            url: len(records)
            for url, records in self._store.group_by("source_url").items()
            if len(records) > 1
        }
