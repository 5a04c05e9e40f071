"""Web page scraping and same-site crawling for ingestion."""
import asyncio
from collections import deque
from typing import List, Optional, Tuple
from urllib.parse import urljoin, urldefrag, urlparse
import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field
import structlog

from docrag import config
from docrag.errors import ExtractionError, ValidationError
from docrag.rag.extractors import html_to_text

logger = structlog.get_logger()


class CrawlOptions(BaseModel):
    """Limits for a crawl starting at one URL."""

    max_depth: int = Field(default=config.CRAWL_MAX_DEPTH, ge=0, le=10)
    max_pages: int = Field(default=config.CRAWL_MAX_PAGES, ge=1, le=500)
    delay_ms: int = Field(default=config.CRAWL_DELAY_MS, ge=0, le=60000)
    same_origin_only: bool = config.CRAWL_SAME_ORIGIN


def validate_url(url: str) -> str:
    """Return the stripped URL if it is an absolute http(s) URL.

    Raises:
        ValidationError: If the URL is empty or malformed
    """
    url = (url or "").strip()
    if not url:
        raise ValidationError("URL cannot be empty")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid URL format: {url}")

    return url


def _origin(url: str) -> Tuple[str, str]:
    parsed = urlparse(url)
    return parsed.scheme, parsed.netloc.lower()


def _frame_page(title: str, url: str, body: str) -> str:
    return f"# {title}\nURL: {url}\n\n{body}"


class WebScraper:
    """Fetches pages over HTTP and reduces them to plain text."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or config.SCRAPE_TIMEOUT
        self.user_agent = user_agent or config.SCRAPE_USER_AGENT
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def scrape(self, url: str, selector: Optional[str] = None) -> str:
        """Fetch one page and extract its text.

        Args:
            url: Absolute http(s) URL
            selector: Optional CSS selector restricting what is extracted

        Returns:
            Plain text of the page

        Raises:
            ValidationError: If the URL is malformed
            ExtractionError: If the page cannot be fetched
        """
        url = validate_url(url)
        logger.info("web_scrape_started", url=url, selector=selector)

        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("web_scrape_failed", url=url, error=str(e))
            raise ExtractionError(f"Failed to scrape website {url}: {e}", source=url) from e

        text = html_to_text(response.text, selector=selector)

        logger.info("web_scrape_completed", url=url, length=len(text))
        return text

    async def crawl(self, url: str, options: Optional[CrawlOptions] = None) -> str:
        """Breadth-first crawl from a start URL.

        Each page becomes a block headed by its title and URL; blocks are
        joined by a blank line in visit order. Pages that fail or aren't
        HTML are skipped.

        Args:
            url: Absolute http(s) start URL
            options: Crawl limits (defaults from config)

        Returns:
            Concatenated page texts

        Raises:
            ValidationError: If the URL is malformed
            ExtractionError: If no page produced any text
        """
        url = validate_url(url)
        options = options or CrawlOptions()
        start_origin = _origin(url)

        start = urldefrag(url)[0]
        queue = deque([(start, 0)])
        seen = {start}
        pages: List[str] = []
        fetched = 0

        logger.info(
            "web_crawl_started",
            url=url,
            max_depth=options.max_depth,
            max_pages=options.max_pages,
        )

        async with self._client() as client:
            while queue and fetched < options.max_pages:
                page_url, depth = queue.popleft()

                if fetched > 0 and options.delay_ms > 0:
                    await asyncio.sleep(options.delay_ms / 1000)
                fetched += 1

                try:
                    response = await client.get(page_url)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning("web_crawl_page_failed", url=page_url, error=str(e))
                    continue

                if "html" not in response.headers.get("content-type", "text/html"):
                    logger.debug("web_crawl_skipped_non_html", url=page_url)
                    continue

                html = response.text
                soup = BeautifulSoup(html, "html.parser")
                title = soup.title.get_text(strip=True) if soup.title else ""
                body = html_to_text(html)

                if body:
                    pages.append(_frame_page(title or page_url, page_url, body))

                if depth >= options.max_depth:
                    continue

                for anchor in soup.find_all("a", href=True):
                    link = urldefrag(urljoin(str(response.url), anchor["href"]))[0]
                    if urlparse(link).scheme not in ("http", "https"):
                        continue
                    if options.same_origin_only and _origin(link) != start_origin:
                        continue
                    if link in seen:
                        continue
                    seen.add(link)
                    queue.append((link, depth + 1))

        logger.info("web_crawl_completed", url=url, pages_fetched=fetched, pages_kept=len(pages))

        if not pages:
            raise ExtractionError(f"No content could be crawled from {url}", source=url)

        return "\n\n".join(pages)
