"""TrendCollector - 데모 진입점 (데모 수집기로 강제 실행 1회)"""

import asyncio
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from dotenv import load_dotenv

from trend_collector.ingestion.base_connector import CallableConnector
from trend_collector.pipeline import Pipeline
from trend_collector.registry.source_registry import SourceRegistry
from trend_collector.utils.config_manager import ConfigManager
from trend_collector.utils.logger import get_logger, setup_logging


def _demo_fetcher(source_id: str):
    """소스별 가짜 수집 함수. 같은 URL이 재수집되도록 번호 범위를 좁게 둔다."""

    def fetch(category: str, limit: int) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        items = []
        for _ in range(limit):
            n = random.randint(1, 15)
            items.append({
                "title": f"{source_id} {category} showcase #{n}",
                "description": f"Demo item {n} from {source_id}",
                "sourceUrl": f"https://{source_id}.example/{category}/{n}",
                "publishedAt": (now - timedelta(hours=random.randint(0, 240))).isoformat(),
                "stats": {
                    "likes": random.randint(0, 500),
                    "views": random.randint(0, 20000),
                    "saves": random.randint(0, 50),
                },
                "isTrending": random.random() < 0.1,
                "tags": ["demo", category],
            })
        return items

    return fetch


def main() -> None:
    load_dotenv()
    setup_logging()
    logger = get_logger(__name__)
    logger.info("TrendCollector 시작")

    config = ConfigManager()
    registry = SourceRegistry(config)
    connectors = {
        source.id: CallableConnector(source, _demo_fetcher(source.id))
        for source in registry.get_all()
    }
    pipeline = Pipeline(config, connectors=connectors)

    print("=" * 60)
    print(" TrendCollector 데모: 강제 수집 1회")
    print("=" * 60)

    for domain in ("designs", "competitions"):
        run = asyncio.run(pipeline.scheduler(domain).trigger(force=True))
        print(f"\n[{domain}] status={run.status.value} scraped={run.total_scraped} "
              f"duplicates={run.duplicates_removed} failed={run.categories_failed}")

        trending = pipeline.trending_views[domain].get()
        for record in trending["records"][:5]:
            print(f"  {record['trending_score']:>9.2f}  {record['title']}")

    print(f"\n{'=' * 60}")
    status = pipeline.scheduler("designs").get_status()
    print(f"다음 실행 가능: {status['nextEligibleRunAt']}")
    print(f"통계: {status['statistics']}")
    pipeline.close()


if __name__ == "__main__":
    main()
