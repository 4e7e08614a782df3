"""공유 테스트 fixture"""

import asyncio
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List

import pytest
import yaml

from trend_collector.ingestion.base_connector import CallableConnector
from trend_collector.pipeline import Pipeline
from trend_collector.registry.source_registry import SourceRegistry
from trend_collector.utils.config_manager import ConfigManager


# 테스트 기준 시각 (결정론적 테스트용)
REFERENCE_TIME = datetime(2026, 2, 5, 14, 0, 0, tzinfo=timezone.utc)
REFERENCE_MS = REFERENCE_TIME.timestamp() * 1000


class FakeClock:
    """
    가상 시계. 호출하면 현재 epoch ms, sleep()은 실제로 기다리지 않고 시각만 전진.
    """

    def __init__(self, start_ms: float = REFERENCE_MS) -> None:
        self.now = start_ms
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds * 1000
        await asyncio.sleep(0)


@pytest.fixture
def reference_time() -> datetime:
    """고정된 기준 시각."""
    return REFERENCE_TIME


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config_dir() -> str:
    """실제 config 디렉토리 경로."""
    return str(Path(__file__).parent.parent / "config")


@pytest.fixture
def config_manager(config_dir: str) -> ConfigManager:
    """실제 설정 파일 기반 ConfigManager."""
    return ConfigManager(config_dir=config_dir)


@pytest.fixture
def tmp_config_dir():
    """임시 config 디렉토리 (단위 테스트용)."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_data = {
            "scraping": {"enabled": False, "max_retries": 2},
            "domains": {
                "designs": {
                    "kind": "design",
                    "categories": ["ui-ux"],
                    "min_interval_minutes": 60,
                },
            },
            "cache": {"ttl_ms": {"short": 1000, "medium": 2000}},
        }
        sources_data = {
            "sources": {
                "alpha": {
                    "kind": "design",
                    "ingestion_type": "api",
                    "base_url": "https://alpha.example/api",
                    "priority": 2,
                    "rate_limit": {"strategy": "sliding_window", "max_requests": 2, "time_window_ms": 1000},
                },
                "beta": {
                    "kind": "design",
                    "ingestion_type": "rss",
                    "base_url": "https://beta.example/feed",
                    "priority": 1,
                    "supported_categories": ["illustrations"],
                    "rate_limit": {"strategy": "token_bucket", "capacity": 5, "refill_rate": 1},
                },
            },
        }
        with open(os.path.join(tmpdir, "config.yaml"), "w", encoding="utf-8") as f:
            yaml.dump(config_data, f, allow_unicode=True)
        with open(os.path.join(tmpdir, "sources_registry.yaml"), "w", encoding="utf-8") as f:
            yaml.dump(sources_data, f, allow_unicode=True)

        yield tmpdir


def _fixed_fetcher(source_id: str):
    """카테고리마다 같은 2건을 돌려주는 수집 함수."""

    def fetch(category: str, limit: int):
        published = (REFERENCE_TIME - timedelta(hours=2)).isoformat()
        return [
            {
                "title": f"{source_id} {category} #{n}",
                "sourceUrl": f"https://{source_id}.example/{category}/{n}",
                "publishedAt": published,
                "stats": {"likes": 120 * (n + 1), "views": 1000, "saves": n},
                "isTrending": n == 1,
            }
            for n in range(2)
        ]

    return fetch


@pytest.fixture
def pipeline(config_manager: ConfigManager, clock: FakeClock, monkeypatch) -> Pipeline:
    """실제 설정 + 고정 결과 커넥터 + 가상 시계로 조립한 파이프라인."""
    monkeypatch.delenv("SCRAPING_ENABLED", raising=False)
    registry = SourceRegistry(config_manager)
    connectors = {
        source.id: CallableConnector(source, _fixed_fetcher(source.id))
        for source in registry.get_all()
    }
    return Pipeline(config_manager, connectors=connectors, clock=clock, sleep=clock.sleep)
