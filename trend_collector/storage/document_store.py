"""문서 저장소 인터페이스 + 인메모리 구현

파이프라인은 저장소에 "필드로 찾기", "개수", "필드로 그룹", "ID 집합 삭제"
정도만 요구한다. 실제 엔진(MongoDB 등)은 이 인터페이스 뒤에 둔다.
"""

import itertools
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from trend_collector.models.record import ContentRecord
from trend_collector.utils.errors import StoreUnavailableError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentStore(ABC):
    """콘텐츠 레코드 저장소 추상 인터페이스."""

    @abstractmethod
    def ping(self) -> None:
        """연결 확인. 불가하면 StoreUnavailableError."""
        ...

    @abstractmethod
    def insert_many(self, records: Iterable[ContentRecord]) -> List[str]:
        """레코드 추가 후 부여된 ID 목록 반환. 중복 여부는 검사하지 않는다."""
        ...

    @abstractmethod
    def find(self, predicate: Optional[Callable[[ContentRecord], bool]] = None, **filters: Any) -> List[ContentRecord]:
        """필드 일치(+선택적 조건 함수)로 조회. 삽입 순서 유지."""
        ...

    @abstractmethod
    def count(self, **filters: Any) -> int:
        ...

    @abstractmethod
    def group_by(self, field_name: str) -> Dict[Any, List[ContentRecord]]:
        """필드 값별 레코드 그룹 (그룹 내 삽입 순서 유지)."""
        ...

    @abstractmethod
    def delete_by_ids(self, ids: Iterable[str]) -> int:
        ...

    @abstractmethod
    def update_by_ids(self, ids: Iterable[str], changes: Dict[str, Any]) -> int:
        ...

    def close(self) -> None:
        """연결 해제. 이후 호출은 StoreUnavailableError."""


class InMemoryDocumentStore(DocumentStore):
    """
    프로세스 내 저장소.

    id와 seq(삽입 순번)를 부여한다. seq는 중복 제거 시 동률 created_at의
    결정적 보조 정렬 키로 쓰인다.
    """

    def __init__(self, name: str = "records") -> None:
        self.name = name
        self._records: Dict[str, ContentRecord] = {}
        self._seq = itertools.count(1)
        self._closed = False

    def _ensure_available(self, operation: str) -> None:
        """닫힌 저장소에 대한 모든 연산은 StoreUnavailableError."""
        if self._closed:
            raise StoreUnavailableError(f"{self.name} store is closed", operation=operation)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            logger.info("저장소 닫힘: %s (%d건)", self.name, len(self._records))

    def ping(self) -> None:
        self._ensure_available("ping")

    def insert_many(self, records: Iterable[ContentRecord]) -> List[str]:
        self._ensure_available("insert")
        now = datetime.now(timezone.utc)
        ids: List[str] = []
        for record in records:
            stored = replace(
                record,
                id=record.id or uuid.uuid4().hex,
                seq=next(self._seq),
                created_at=record.created_at or now,
                updated_at=record.updated_at or now,
            )
            self._records[stored.id] = stored
            ids.append(stored.id)
        logger.debug("저장소 추가: %s +%d건 (총 %d건)", self.name, len(ids), len(self._records))
        return ids

    def get(self, record_id: str) -> Optional[ContentRecord]:
        self._ensure_available("get")
        return self._records.get(record_id)

    def find(self, predicate: Optional[Callable[[ContentRecord], bool]] = None, **filters: Any) -> List[ContentRecord]:
        self._ensure_available("find")
        result = []
        for record in self._records.values():
            if any(getattr(record, k) != v for k, v in filters.items()):
                continue
            if predicate is not None and not predicate(record):
                continue
            result.append(record)
        return result

    def count(self, **filters: Any) -> int:
        return len(self.find(**filters))

    def group_by(self, field_name: str) -> Dict[Any, List[ContentRecord]]:
        self._ensure_available("group_by")
        groups: Dict[Any, List[ContentRecord]] = {}
        for record in self._records.values():
            groups.setdefault(getattr(record, field_name), []).append(record)
        return groups

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        self._ensure_available("delete")
        removed = 0
        for record_id in ids:
            if self._records.pop(record_id, None) is not None:
                removed += 1
        if removed:
            logger.debug("저장소 삭제: %s -%d건", self.name, removed)
        return removed

    def update_by_ids(self, ids: Iterable[str], changes: Dict[str, Any]) -> int:
        self._ensure_available("update")
        modified = 0
        for record_id in ids:
            record = self._records.get(record_id)
            if record is None:
                continue
            self._records[record_id] = replace(record, **changes)
            modified += 1
        return modified

    def __len__(self) -> int:
        return len(self._records)
