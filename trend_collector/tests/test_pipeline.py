"""Pipeline 조립 테스트"""

import asyncio

import pytest

from trend_collector.models.job_run import JobStatus
from trend_collector.pipeline import Pipeline
from trend_collector.utils.config_manager import ConfigManager
from trend_collector.utils.errors import NotFoundError


# ═══════════════════════════════════════════════════════════
# 설정 반영
# ═══════════════════════════════════════════════════════════

class TestPipelineConfig:
    """설정 → 구성 요소."""

    def test_domains_from_config(self, pipeline):
        designs = pipeline.scheduler("designs")
        competitions = pipeline.scheduler("competitions")

        assert len(designs.categories) == 6
        assert competitions.categories == ["hackathons"]
        assert designs.min_interval_ms == 120 * 60 * 1000
        assert competitions.min_interval_ms == 30 * 60 * 1000
        assert pipeline.enabled is True

    def test_views_share_one_cache(self, pipeline):
        assert pipeline.trending_views["designs"].default_limit == 12
        assert pipeline.listing_views["competitions"].max_limit == 100
        assert pipeline.ttl.trending_day == 15 * 60 * 1000

    def test_unknown_domain(self, pipeline):
        with pytest.raises(NotFoundError):
            pipeline.scheduler("podcasts")

    def test_scraping_enabled_env_override(self, config_manager, monkeypatch):
        monkeypatch.setenv("SCRAPING_ENABLED", "false")
        pipeline = Pipeline(config_manager)
        assert pipeline.enabled is False
        assert all(not s.enabled for s in pipeline.schedulers.values())

    def test_disabled_in_config(self, tmp_config_dir, monkeypatch):
        monkeypatch.delenv("SCRAPING_ENABLED", raising=False)
        pipeline = Pipeline(ConfigManager(tmp_config_dir))
        assert pipeline.enabled is False
        assert pipeline.scheduler("designs").min_interval_ms == 60 * 60 * 1000
        assert pipeline.scheduler("competitions").categories == []
        assert pipeline.ttl.medium == 2000

    def test_api_credentials_from_env(self, config_manager, monkeypatch):
        monkeypatch.setenv("DRIBBBLE_API_KEY", "secret-token")
        monkeypatch.delenv("BEHANCE_API_KEY", raising=False)
        credentials = Pipeline(config_manager)._api_credentials()
        assert credentials.get("dribbble") == "secret-token"
        assert "behance" not in credentials


# ═══════════════════════════════════════════════════════════
# 전체 실행
# ═══════════════════════════════════════════════════════════

class TestPipelineRun:
    """수집 → 조회 → 정리."""

    def test_scrape_designs(self, pipeline):
        run = asyncio.run(pipeline.scheduler("designs").trigger(force=True))

        assert run.status == JobStatus.SUCCESS
        assert run.total_scraped == 28
        assert len(pipeline.stores["designs"]) == 28
        assert len(pipeline.stores["competitions"]) == 0

    def test_scrape_competitions(self, pipeline):
        run = asyncio.run(pipeline.scheduler("competitions").trigger(force=True))

        assert run.status == JobStatus.SUCCESS
        assert run.category_results[0].by_source.keys() == {"devpost", "unstop", "cumulus"}
        records = pipeline.stores["competitions"].find()
        assert len(records) == 6
        assert all(r.kind == "competition" for r in records)

    def test_trending_after_scrape(self, pipeline):
        asyncio.run(pipeline.scheduler("designs").trigger(force=True))
        data = pipeline.trending_views["designs"].get()
        assert len(data["records"]) == 12
        assert data["records"][0]["is_platform_trending"] is True

    def test_cleanup_invalidates_views(self, pipeline, clock):
        asyncio.run(pipeline.scheduler("designs").trigger(force=True))
        clock.advance(61 * 24 * 60 * 60 * 1000)
        pipeline.trending_views["designs"].get()
        pipeline.listing_views["designs"].get()
        assert pipeline.cache.keys("designs:trending:*")

        summary = pipeline.cleaner.run()

        assert summary["designsDeleted"] == 14
        assert pipeline.cache.keys("designs:trending:*") == []
        assert pipeline.cache.keys("designs:*:{*") == []

    def test_status(self, pipeline):
        asyncio.run(pipeline.scheduler("competitions").trigger(force=True))
        status = pipeline.get_status()

        assert status["scrapingEnabled"] is True
        assert set(status["schedulers"]) == {"designs", "competitions"}
        assert status["schedulers"]["competitions"]["lastRun"]["status"] == "success"
        assert status["schedulers"]["designs"]["lastRunAt"] is None
        assert status["sources"]["total"] == 6
        assert set(status["rateLimiters"]) == {"behance", "dribbble", "awwwards", "devpost", "unstop", "cumulus"}
        assert "hitRate" in status["cache"]
