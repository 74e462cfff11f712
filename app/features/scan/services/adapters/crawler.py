import asyncio
from typing import List, Optional
from urllib.parse import urldefrag, urlparse

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from app.features.scan.schemas.adapters import CrawlRequest
from app.features.scan.services.adapters.base import RawOutput
from app.features.scan.services.adapters.browser import build_driver
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class SeleniumCrawler:
    """Breadth-first crawl of same-origin links in headless Chrome."""

    def __init__(self, max_pages: Optional[int] = None):
        self.max_pages = max_pages or settings.CRAWL_MAX_PAGES

    async def crawl(self, request: CrawlRequest) -> RawOutput:
        endpoints = await asyncio.to_thread(
            self.discover_pages, request.url, request.max_depth, self.max_pages
        )
        return {"url": request.url, "endpoints": endpoints}

    @staticmethod
    def discover_pages(url: str, max_depth: int = 2, max_pages: int = 25) -> List[str]:
        """
        Discover pages reachable from `url` within `max_depth` link hops.

        Args:
            url: Base URL to start discovery from
            max_depth: Link hops to follow from the start page (0 = start page only)
            max_pages: Maximum number of pages to return

        Returns:
            List of discovered URLs, start page first, all from the same origin
        """
        base_parsed = urlparse(url)
        base_domain = f"{base_parsed.scheme}://{base_parsed.netloc}"

        driver = build_driver()
        try:
            visited = set()
            queued = {url}
            to_visit = [(url, 0)]
            pages = []

            while to_visit and len(pages) < max_pages:
                current, depth = to_visit.pop(0)
                if current in visited:
                    continue
                visited.add(current)

                try:
                    driver.get(current)
                except WebDriverException as e:
                    logger.warning(f"Failed to load page {current}: {e}")
                    continue

                pages.append(current)
                if depth >= max_depth:
                    continue

                for link in driver.find_elements(By.TAG_NAME, "a"):
                    href = link.get_attribute("href")
                    if not href:
                        continue
                    href = urldefrag(href)[0]
                    if SeleniumCrawler._is_same_domain(href, base_domain) and href not in queued:
                        queued.add(href)
                        to_visit.append((href, depth + 1))

            logger.info(f"Discovered {len(pages)} pages from {url}")
            return pages
        finally:
            driver.quit()

    @staticmethod
    def _is_same_domain(url: str, base_domain: str) -> bool:
        """True if `url` has exactly the scheme and host of `base_domain`."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        if not parsed.scheme or not parsed.netloc:
            return False
        return f"{parsed.scheme}://{parsed.netloc}" == base_domain
