"""RetentionCleaner 테스트"""

from datetime import datetime, timedelta, timezone

import pytest

from trend_collector.maintenance.retention_cleaner import RetentionCleaner
from trend_collector.models.record import KIND_COMPETITION, ContentRecord, Engagement
from trend_collector.storage.document_store import InMemoryDocumentStore
from trend_collector.utils.config_manager import ConfigManager

NOW = datetime(2026, 2, 5, 14, 0, 0, tzinfo=timezone.utc)


def _days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


def _design(title, age_days, saves=0, trending=False) -> ContentRecord:
    return ContentRecord(
        source_platform="behance",
        source_url=f"https://behance.example/{title}",
        title=title,
        created_at=_days_ago(age_days),
        updated_at=_days_ago(age_days),
        engagement=Engagement(saves=saves),
        is_platform_trending=trending,
    )


def _competition(title, deadline_days_ago=None, active=True, updated_days_ago=1) -> ContentRecord:
    return ContentRecord(
        kind=KIND_COMPETITION,
        source_platform="devpost",
        source_url=f"https://devpost.example/{title}",
        category="hackathons",
        title=title,
        deadline=_days_ago(deadline_days_ago) if deadline_days_ago is not None else None,
        is_active=active,
        created_at=_days_ago(updated_days_ago),
        updated_at=_days_ago(updated_days_ago),
    )


class TestRetentionCleaner:
    """보관 기간 정리."""

    @pytest.fixture(autouse=True)
    def _setup(self, clock):
        self.designs = InMemoryDocumentStore("designs")
        self.competitions = InMemoryDocumentStore("competitions")
        self.changed = []
        self.cleaner = RetentionCleaner(
            self.designs, self.competitions, on_change=self.changed.append, clock=clock,
        )

    def _titles(self, store):
        return sorted(r.title for r in store.find())

    def test_expired_competition_deactivated(self):
        self.competitions.insert_many([
            _competition("long-closed", deadline_days_ago=8),
            _competition("just-closed", deadline_days_ago=3),
            _competition("open", deadline_days_ago=-10),
            _competition("no-deadline"),
        ])
        summary = self.cleaner.run()

        assert summary["competitionsDeactivated"] == 1
        inactive = self.competitions.find(is_active=False)
        assert [r.title for r in inactive] == ["long-closed"]
        assert inactive[0].updated_at == NOW

    def test_freshly_deactivated_not_deleted(self):
        self.competitions.insert_many([_competition("closed", deadline_days_ago=30, updated_days_ago=200)])
        summary = self.cleaner.run()
        assert summary["competitionsDeactivated"] == 1
        assert summary["competitionsDeleted"] == 0
        assert len(self.competitions) == 1

    def test_stale_inactive_competition_deleted(self):
        self.competitions.insert_many([
            _competition("ancient", active=False, updated_days_ago=91),
            _competition("recent", active=False, updated_days_ago=30),
            _competition("active-old", updated_days_ago=200),
        ])
        summary = self.cleaner.run()
        assert summary["competitionsDeleted"] == 1
        assert self._titles(self.competitions) == ["active-old", "recent"]

    def test_old_unpopular_designs_deleted(self):
        self.designs.insert_many([
            _design("old-plain", age_days=61),
            _design("old-saved", age_days=61, saves=5),
            _design("old-trending", age_days=90, trending=True),
            _design("new-plain", age_days=10),
        ])
        summary = self.cleaner.run()
        assert summary["designsDeleted"] == 1
        assert self._titles(self.designs) == ["new-plain", "old-saved", "old-trending"]

    def test_on_change_per_domain(self):
        self.designs.insert_many([_design("old-plain", age_days=61)])
        self.cleaner.run()
        assert self.changed == ["designs"]

    def test_nothing_to_clean(self):
        self.designs.insert_many([_design("fresh", age_days=1)])
        summary = self.cleaner.run()
        assert summary == {
            "competitionsDeactivated": 0,
            "competitionsDeleted": 0,
            "designsDeleted": 0,
            "executionTimeMs": 0,
        }
        assert self.changed == []

    def test_retention_from_config(self, tmp_path, clock):
        (tmp_path / "config.yaml").write_text("retention:\n  design_retention_days: 5\n", encoding="utf-8")
        (tmp_path / "sources_registry.yaml").write_text("sources: []\n", encoding="utf-8")
        cleaner = RetentionCleaner(
            self.designs, self.competitions, config=ConfigManager(str(tmp_path)), clock=clock,
        )
        self.designs.insert_many([_design("week-old", age_days=7)])
        assert cleaner.run()["designsDeleted"] == 1
