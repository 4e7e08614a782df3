"""JSON API 기반 수집 커넥터"""

import asyncio
import json
import time
from typing import Any, Dict, List
from urllib.error import URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from trend_collector.ingestion.base_connector import BaseConnector
from trend_collector.models.source import ContentSource
from trend_collector.utils.errors import SourceFetchError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

ITEM_KEYS = ("items", "results", "data", "projects", "shots")


class ApiConnector(BaseConnector):
    """REST API 기반 수집 커넥터."""

    def __init__(self, source: ContentSource, api_key: str = "", timeout: float = 15) -> None:
        super().__init__(source)
        self._api_key = api_key
        self._timeout = timeout

    async def fetch(self, category: str, limit: int = 10) -> List[Dict[str, Any]]:
        """API에서 항목 수집."""
        logger.debug("API 수집 시작: %s (%s)", self.source.id, category)
        start = time.time()

        params = {"category": category, "limit": limit}
        url = f"{self.source.base_url}?{urlencode(params)}"
        data = await asyncio.to_thread(self._fetch_json, url)

        items = self._extract_items(data)[:limit]
        elapsed_ms = int((time.time() - start) * 1000)
        for item in items:
            item.setdefault("category", category)

        logger.info("API 수집 완료: %s → %d건 (%dms)", self.source.id, len(items), elapsed_ms)
        return items

    def _fetch_json(self, url: str) -> Any:
        headers = {"User-Agent": self.source.user_agent, "Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        try:
            req = Request(url, headers=headers)
            with urlopen(req, timeout=self._timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except (URLError, OSError, ValueError) as e:
            raise SourceFetchError(self.source.id, str(e)) from e

    @staticmethod
    def _extract_items(data: Any) -> List[Dict[str, Any]]:
        """응답 본문에서 항목 배열 찾기."""
        if isinstance(data, list):
            return [d for d in data if isinstance(d, dict)]
        if isinstance(data, dict):
            for key in ITEM_KEYS:
                value = data.get(key)
                if isinstance(value, list):
                    return [d for d in value if isinstance(d, dict)]
        return []
