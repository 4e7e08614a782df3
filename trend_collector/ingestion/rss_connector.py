"""RSS/Atom 피드 수집 커넥터"""

import asyncio
import re
import time
from typing import Any, Dict, List
from urllib.error import URLError
from urllib.request import Request, urlopen
from xml.etree import ElementTree

from trend_collector.ingestion.base_connector import BaseConnector
from trend_collector.utils.errors import SourceFetchError
from trend_collector.utils.logger import get_logger

logger = get_logger(__name__)

ATOM_NS = {"atom": "http://www.w3.org/2005/Atom"}


class RssConnector(BaseConnector):
    """RSS/Atom 피드 수집 커넥터 (목록형 피드)."""

    async def fetch(self, category: str, limit: int = 10) -> List[Dict[str, Any]]:
        """피드에서 항목 수집. 카테고리 태그가 있으면 해당 카테고리만."""
        logger.debug("RSS 수집 시작: %s (%s)", self.source.id, self.source.base_url)
        start = time.time()

        xml_text = await asyncio.to_thread(self._fetch_feed, self.source.base_url)
        entries = self._parse_feed(xml_text)

        items: List[Dict[str, Any]] = []
        for entry in entries:
            tags = entry.get("tags", [])
            if tags and category and category not in tags and len(self.source.supported_categories) > 1:
                continue
            entry["category"] = category
            items.append(entry)
            if len(items) >= limit:
                break

        elapsed_ms = int((time.time() - start) * 1000)
        logger.info("RSS 수집 완료: %s → %d건 (%dms)", self.source.id, len(items), elapsed_ms)
        return items

    def _fetch_feed(self, url: str) -> str:
        """HTTP로 피드 XML 가져오기."""
        req = Request(url, headers={"User-Agent": self.source.user_agent})
        try:
            with urlopen(req, timeout=15) as resp:
                return resp.read().decode("utf-8", errors="replace")
        except (URLError, OSError) as e:
            raise SourceFetchError(self.source.id, str(e)) from e

    def _parse_feed(self, xml_text: str) -> List[Dict[str, Any]]:
        """RSS 2.0 / Atom XML 파싱."""
        try:
            root = ElementTree.fromstring(xml_text)
        except ElementTree.ParseError as e:
            raise SourceFetchError(self.source.id, f"invalid feed XML: {e}") from e

        entries = []
        for item in root.iter("item"):
            entries.append({
                "title": self._text(item, "title"),
                "link": self._text(item, "link"),
                "description": self._strip_html(self._text(item, "description")),
                "pubDate": self._text(item, "pubDate"),
                "tags": [c.text.strip().lower() for c in item.findall("category") if c.text],
            })

        if not entries:
            for entry in root.findall(".//atom:entry", ATOM_NS):
                link_el = entry.find("atom:link", ATOM_NS)
                entries.append({
                    "title": self._text(entry, "atom:title", ATOM_NS),
                    "link": link_el.get("href", "") if link_el is not None else "",
                    "description": self._strip_html(
                        self._text(entry, "atom:summary", ATOM_NS) or self._text(entry, "atom:content", ATOM_NS)
                    ),
                    "pubDate": self._text(entry, "atom:published", ATOM_NS) or self._text(entry, "atom:updated", ATOM_NS),
                    "tags": [c.get("term", "").lower() for c in entry.findall("atom:category", ATOM_NS) if c.get("term")],
                })

        return entries

    @staticmethod
    def _text(element, tag: str, ns: Dict[str, str] = None) -> str:
        el = element.find(tag, ns) if ns else element.find(tag)
        return el.text.strip() if el is not None and el.text else ""

    @staticmethod
    def _strip_html(html: str) -> str:
        """HTML 태그 제거."""
        return re.sub(r"<[^>]+>", "", html).strip()
