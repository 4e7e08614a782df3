"""RecordNormalizer 테스트"""

from datetime import datetime, timezone

import pytest

from trend_collector.models.record import ContentRecord
from trend_collector.models.source import ContentSource
from trend_collector.normalizer.record_normalizer import RecordNormalizer
from trend_collector.utils.errors import ValidationError

INGESTED_AT = datetime(2026, 2, 5, 14, 0, tzinfo=timezone.utc)


def _make_source(**overrides) -> ContentSource:
    defaults = {"id": "behance", "kind": "design", "ingestion_type": "api"}
    defaults.update(overrides)
    return ContentSource(**defaults)


def _raw(**overrides):
    item = {
        "title": "Bold <b>Type</b> Study",
        "description": "<p>Poster &amp; layout</p>",
        "sourceUrl": "https://behance.example/p/1",
        "publishedAt": "2026-02-04T10:00:00Z",
        "stats": {"likes": 120, "views": "1,500", "saves": 3.0},
        "tags": ["Typography", " Poster ", ""],
        "isTrending": True,
    }
    item.update(overrides)
    return item


# ═══════════════════════════════════════════════════════════
# 정규화
# ═══════════════════════════════════════════════════════════

class TestNormalize:
    """원본 dict → ContentRecord."""

    def setup_method(self):
        self.normalizer = RecordNormalizer()
        self.source = _make_source()

    def test_basic_fields(self):
        record = self.normalizer.normalize(_raw(), self.source, "ui-ux", INGESTED_AT)
        assert record.title == "Bold Type Study"
        assert record.description == "Poster & layout"
        assert record.source_platform == "behance"
        assert record.kind == "design"
        assert record.category == "ui-ux"
        assert record.created_at == INGESTED_AT
        assert record.published_at == datetime(2026, 2, 4, 10, 0, tzinfo=timezone.utc)
        assert record.is_platform_trending is True

    def test_engagement_coercion(self):
        record = self.normalizer.normalize(_raw(), self.source, "ui-ux", INGESTED_AT)
        assert record.engagement.likes == 120
        assert record.engagement.views == 1500
        assert record.engagement.saves == 3

    def test_missing_engagement_defaults_to_zero(self):
        record = self.normalizer.normalize(_raw(stats={}), self.source, "ui-ux", INGESTED_AT)
        assert (record.engagement.likes, record.engagement.views, record.engagement.saves) == (0, 0, 0)

    def test_tags_cleaned(self):
        record = self.normalizer.normalize(_raw(), self.source, "ui-ux", INGESTED_AT)
        assert record.tags == ["typography", "poster"]

    def test_missing_published_at_uses_ingestion_time(self):
        record = self.normalizer.normalize(_raw(publishedAt=None), self.source, "ui-ux", INGESTED_AT)
        assert record.published_at == INGESTED_AT

    def test_naive_date_is_utc(self):
        record = self.normalizer.normalize(_raw(publishedAt="2026-02-01 08:30"), self.source, "ui-ux", INGESTED_AT)
        assert record.published_at.tzinfo is not None

    def test_category_defaults_to_all(self):
        record = self.normalizer.normalize(_raw(), self.source, None, INGESTED_AT)
        assert record.category == "all"

    def test_rss_link_key(self):
        item = {"title": "Feed entry", "link": "https://feed.example/1", "pubDate": "Wed, 04 Feb 2026 10:00:00 +0000"}
        record = self.normalizer.normalize(item, self.source, "ui-ux", INGESTED_AT)
        assert record.source_url == "https://feed.example/1"

    def test_competition_fields(self):
        source = _make_source(id="devpost", kind="competition")
        record = self.normalizer.normalize(
            _raw(deadline="2026-03-01T00:00:00Z", isActive=True), source, "hackathons", INGESTED_AT,
        )
        assert record.kind == "competition"
        assert record.deadline == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert record.is_active

    def test_record_input(self):
        item = ContentRecord(title="Already built", source_url="https://x.example/1")
        record = self.normalizer.normalize(item, self.source, "ui-ux", INGESTED_AT)
        assert record.source_platform == "behance"
        assert record.category == "ui-ux"
        assert record.created_at == INGESTED_AT


# ═══════════════════════════════════════════════════════════
# 검증
# ═══════════════════════════════════════════════════════════

class TestValidation:
    """잘못된 항목은 ValidationError."""

    def setup_method(self):
        self.normalizer = RecordNormalizer()
        self.source = _make_source()

    def test_title_too_short(self):
        with pytest.raises(ValidationError) as exc:
            self.normalizer.normalize(_raw(title="A"), self.source, "ui-ux", INGESTED_AT)
        assert "title" in exc.value.errors

    def test_relative_url_rejected(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(_raw(sourceUrl="/p/1"), self.source, "ui-ux", INGESTED_AT)

    def test_negative_engagement_rejected(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(_raw(stats={"likes": -1}), self.source, "ui-ux", INGESTED_AT)

    def test_non_numeric_engagement_rejected(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(_raw(stats={"views": "lots"}), self.source, "ui-ux", INGESTED_AT)

    def test_description_too_long(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize(_raw(description="x" * 2001), self.source, "ui-ux", INGESTED_AT)

    def test_non_dict_rejected(self):
        with pytest.raises(ValidationError):
            self.normalizer.normalize("not a record", self.source, "ui-ux", INGESTED_AT)

    def test_batch_drops_and_counts(self):
        items = [_raw(), _raw(title=""), _raw(sourceUrl="ftp://x"), _raw(sourceUrl="https://behance.example/p/2")]
        records, invalid = self.normalizer.normalize_batch(items, self.source, "ui-ux", INGESTED_AT)
        assert len(records) == 2
        assert invalid == 2

    def test_non_object_stats_rejected(self):
        with pytest.raises(ValidationError) as exc:
            self.normalizer.normalize(_raw(stats="n/a"), self.source, "ui-ux", INGESTED_AT)
        assert "stats" in exc.value.errors

    def test_non_iterable_tags_rejected(self):
        with pytest.raises(ValidationError) as exc:
            self.normalizer.normalize(_raw(tags=7), self.source, "ui-ux", INGESTED_AT)
        assert "tags" in exc.value.errors

    def test_batch_drops_malformed_shapes(self):
        items = [
            _raw(),
            _raw(sourceUrl="https://behance.example/p/2", stats="n/a"),
            _raw(sourceUrl="https://behance.example/p/3", tags=7),
            _raw(sourceUrl="https://behance.example/p/4", engagement=["likes", 3], stats=None),
        ]
        records, invalid = self.normalizer.normalize_batch(items, self.source, "ui-ux", INGESTED_AT)
        assert [r.source_url for r in records] == ["https://behance.example/p/1"]
        assert invalid == 3
