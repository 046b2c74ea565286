"""
HTTP fetch strategy: single GET with rotating headers, parsed with BeautifulSoup.

Never retries on its own; callers wrap it in core.retry.with_retry.
"""
import asyncio
import logging
import random
from typing import Dict, Optional

import httpx
from bs4 import BeautifulSoup

from core.event_log import EventLog
from core.scraper_config import ACCEPT_LANGUAGES, USER_AGENTS, ScraperSettings

logger = logging.getLogger(__name__)

HTML_PARSER = 'lxml'


class FetchResult:
    """Outcome of one HTTP fetch"""

    def __init__(
        self,
        success: bool,
        html: Optional[str] = None,
        soup: Optional[BeautifulSoup] = None,
        error: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.success = success
        self.html = html
        self.soup = soup
        self.error = error
        self.status_code = status_code

    def __repr__(self):
        if self.success:
            return f"FetchResult(success=True, html_length={len(self.html or '')})"
        return f"FetchResult(success=False, error={self.error!r})"


def build_headers(rng: Optional[random.Random] = None) -> Dict[str, str]:
    """Browser-like request headers with a random user agent and locale."""
    rng = rng or random
    return {
        'User-Agent': rng.choice(USER_AGENTS),
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
        'Accept-Language': rng.choice(ACCEPT_LANGUAGES),
        'Accept-Encoding': 'gzip, deflate',
        'Connection': 'keep-alive',
        'Upgrade-Insecure-Requests': '1',
    }


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, HTML_PARSER)


class HTMLFetcher:
    """Lightweight HTTP strategy"""

    def __init__(
        self,
        settings: Optional[ScraperSettings] = None,
        event_log: Optional[EventLog] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or ScraperSettings()
        self.event_log = event_log or EventLog()
        # Tests inject httpx.MockTransport here
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout),
            follow_redirects=True,
            max_redirects=self.settings.max_redirects,
            transport=self.transport,
        )

    async def fetch_html(self, url: str, site_label: str) -> FetchResult:
        """
        GET a career page and check that it carries real content.

        Returns a failed FetchResult (never raises) when the request errors
        or runs past the overall timeout, the status is not 2xx, the body
        is too short, or the visible body
        text is too short; the last two usually mean a bot wall or an empty
        client-rendered shell.
        """
        log = self.event_log
        log.info("Fetching HTML with HTTP request", site_label, {'url': url})

        timeout = self.settings.timeout
        try:
            async with self._client() as client:
                # httpx timeouts are per phase; this caps the whole request
                response = await asyncio.wait_for(client.get(url, headers=build_headers()), timeout)
                response.raise_for_status()
                html = response.text
        except asyncio.TimeoutError:
            message = f"Request timed out after {timeout}s"
            log.error("HTTP fetch failed", site_label, {'error': message})
            return FetchResult(False, error=message)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = f"HTTP {status}: {e.response.reason_phrase}"
            log.error("HTTP fetch failed", site_label, {'error': message})
            return FetchResult(False, error=message, status_code=status)
        except httpx.HTTPError as e:
            message = str(e) or e.__class__.__name__
            log.error("HTTP fetch failed", site_label, {'error': message})
            return FetchResult(False, error=message)
        except Exception as e:
            logger.error(f"[html_fetch] Unexpected error fetching {url}: {e}")
            log.error("HTTP fetch failed", site_label, {'error': str(e)})
            return FetchResult(False, error=str(e) or e.__class__.__name__)

        if not html or len(html) < self.settings.min_html_length:
            log.warn("HTML content too short or empty", site_label, {'length': len(html or '')})
            return FetchResult(False, error='Empty or insufficient HTML content', status_code=response.status_code)

        soup = make_soup(html)
        body = soup.body
        body_text = body.get_text().strip() if body is not None else ''
        if len(body_text) < self.settings.min_body_text_length:
            log.warn("Page body content is minimal", site_label, {'bodyLength': len(body_text)})
            return FetchResult(False, error='Minimal page content detected', status_code=response.status_code)

        log.success("Successfully fetched HTML", site_label, {'htmlLength': len(html)})
        return FetchResult(True, html=html, soup=soup, status_code=response.status_code)
