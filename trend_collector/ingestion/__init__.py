from trend_collector.ingestion.base_connector import BaseConnector, CallableConnector
from trend_collector.ingestion.api_connector import ApiConnector
from trend_collector.ingestion.rss_connector import RssConnector
from trend_collector.ingestion.scraper_orchestrator import ScraperOrchestrator, ScrapeResult

__all__ = [
    "BaseConnector",
    "CallableConnector",
    "ApiConnector",
    "RssConnector",
    "ScraperOrchestrator",
    "ScrapeResult",
]
