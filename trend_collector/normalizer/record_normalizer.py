"""수집 결과 정규화 및 검증 - 원본 dict → ContentRecord"""

import html as html_module
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

from dateutil import parser as dateutil_parser

from trend_collector.models.record import CATEGORY_ALL, ContentRecord, Engagement
from trend_collector.models.source import ContentSource
from trend_collector.utils.clock import ensure_aware
from trend_collector.utils.errors import ValidationError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

TITLE_MIN_LENGTH = 2
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
MAX_TAGS = 30

RawItem = Union[Dict[str, Any], ContentRecord]


class RecordNormalizer:
    """
    커넥터 출력(dict 또는 ContentRecord)을 검증된 ContentRecord로 변환.
    HTML 정제, 날짜 파싱, 반응 지표 정리.

    잘못된 항목은 ValidationError. 호출 측에서 버리고 개수만 센다.
    """

    def normalize(
        self,
        item: RawItem,
        source: ContentSource,
        category: Optional[str] = None,
        ingested_at: Optional[datetime] = None,
    ) -> ContentRecord:
        """단일 항목 정규화."""
        ingested_at = ingested_at or datetime.now(timezone.utc)
        if isinstance(item, ContentRecord):
            return self._validate(replace(
                item,
                kind=item.kind or source.kind,
                source_platform=item.source_platform or source.id,
                category=item.category if item.category not in ("", CATEGORY_ALL) else (category or CATEGORY_ALL),
                published_at=ensure_aware(item.published_at) or ingested_at,
                created_at=ingested_at,
            ))

        if not isinstance(item, dict):
            raise ValidationError("Invalid record object", {"type": type(item).__name__})

        stats = item.get("stats") or item.get("engagement") or {}
        tags = item.get("tags") or []
        shape_errors: Dict[str, str] = {}
        if not isinstance(stats, dict):
            shape_errors["stats"] = f"must be an object, got {type(stats).__name__}"
        if not isinstance(tags, (str, list, tuple)):
            shape_errors["tags"] = f"must be a list or comma-separated string, got {type(tags).__name__}"
        if shape_errors:
            raise ValidationError("Invalid record shape", shape_errors)

        record = ContentRecord(
            kind=source.kind,
            source_platform=source.id,
            source_id=str(item.get("sourceId") or item.get("source_id") or item.get("id") or ""),
            source_url=str(item.get("sourceUrl") or item.get("source_url") or item.get("url") or item.get("link") or "").strip(),
            category=item.get("category") or category or CATEGORY_ALL,
            title=self._clean_html(item.get("title", "")),
            description=self._clean_html(item.get("description", "") or item.get("summary", "")),
            image_url=item.get("imageUrl") or item.get("image_url"),
            tags=self._clean_tags(tags),
            published_at=self._parse_datetime(
                item.get("publishedAt") or item.get("published_at") or item.get("pubDate")
            ) or ingested_at,
            created_at=ingested_at,
            engagement=Engagement(
                likes=self._count(stats, "likes"),
                views=self._count(stats, "views"),
                saves=self._count(stats, "saves"),
            ),
            is_platform_trending=bool(item.get("isTrending") or item.get("is_platform_trending")),
            deadline=self._parse_datetime(item.get("deadline")),
            is_active=item.get("isActive", item.get("is_active", True)) is not False,
        )
        return self._validate(record)

    def normalize_batch(
        self,
        items: List[RawItem],
        source: ContentSource,
        category: Optional[str] = None,
        ingested_at: Optional[datetime] = None,
    ) -> Tuple[List[ContentRecord], int]:
        """
        배치 정규화.

        Returns:
            (유효 레코드 목록, 버려진 항목 수)
        """
        records: List[ContentRecord] = []
        invalid = 0
        for item in items:
            try:
                records.append(self.normalize(item, source, category, ingested_at))
            except ValidationError as e:
                invalid += 1
                logger.warning("레코드 검증 실패 (%s): %s %s", source.id, e.message, e.errors)
            except (TypeError, ValueError, AttributeError) as e:
                invalid += 1
                logger.warning("레코드 형식 오류 (%s): %s", source.id, e)

        if invalid:
            logger.info("정규화 완료: %s %d/%d건 (제외 %d건)", source.id, len(records), len(items), invalid)
        return records, invalid

    # ===== 검증 =====

    def _validate(self, record: ContentRecord) -> ContentRecord:
        errors: Dict[str, str] = {}

        if not (TITLE_MIN_LENGTH <= len(record.title) <= TITLE_MAX_LENGTH):
            errors["title"] = f"title must be {TITLE_MIN_LENGTH}-{TITLE_MAX_LENGTH} characters"
        if len(record.description) > DESCRIPTION_MAX_LENGTH:
            errors["description"] = f"description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
        if not self._is_http_url(record.source_url):
            errors["source_url"] = "source_url must be an absolute http(s) URL"
        for name in ("likes", "views", "saves"):
            value = getattr(record.engagement, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors[f"engagement.{name}"] = "must be a non-negative integer"
        if len(record.tags) > MAX_TAGS:
            errors["tags"] = f"too many tags (max {MAX_TAGS})"

        if errors:
            raise ValidationError("Record validation failed", errors)
        return record

    @staticmethod
    def _is_http_url(url: str) -> bool:
        parsed = urlparse(url or "")
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    @staticmethod
    def _count(stats: Dict[str, Any], key: str) -> Any:
        """반응 지표 정리. 누락 → 0, 숫자 문자열 허용, 그 외는 검증에서 걸러짐."""
        value = stats.get(key)
        if value is None or value == "":
            return 0
        if isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            digits = value.replace(",", "").strip()
            return int(digits) if digits.isdigit() else value
        return value

    @staticmethod
    def _clean_tags(tags: Any) -> List[str]:
        if isinstance(tags, str):
            tags = tags.split(",")
        return [t.strip().lower() for t in tags or [] if isinstance(t, str) and t.strip()]

    @staticmethod
    def _clean_html(text: str) -> str:
        """HTML 태그 제거 및 정제."""
        if not text:
            return ""
        text = str(text)
        text = re.sub(r"<script[^>]*>.*?</script>", "", text, flags=re.DOTALL | re.IGNORECASE)
        text = re.sub(r"<style[^>]*>.*?</style>", "", text, flags=re.DOTALL | re.IGNORECASE)
        text = re.sub(r"<[^>]+>", "", text)
        text = html_module.unescape(text)
        return re.sub(r"\s+", " ", text).strip()

    def _parse_datetime(self, value: Any) -> Optional[datetime]:
        """다양한 날짜 형식 파싱. naive는 UTC로 간주."""
        if not value:
            return None
        if isinstance(value, datetime):
            return ensure_aware(value)
        try:
            return ensure_aware(dateutil_parser.parse(str(value)))
        except (ValueError, TypeError, OverflowError):
            logger.debug("날짜 파싱 실패: %s", value)
            return None
