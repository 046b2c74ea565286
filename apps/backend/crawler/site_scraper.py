"""
Per-site scrape with HTTP first and headless-browser fallback.

    HTTP_ATTEMPT --(jobs found)--------------------------------> TERMINAL
    HTTP_ATTEMPT --(zero jobs or failure)--> BROWSER_FALLBACK --> TERMINAL

A site's failure is always reported as a ScrapeResult, never raised.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.event_log import EventLog
from core.models import NormalizedJob
from core.normalize import normalize_jobs
from core.retry import RetryOptions, with_retry
from core.scraper_config import ScraperSettings
from core.site_registry import SiteConfig
from crawler.browser_crawler import BrowserCrawler, BrowserResult
from crawler.html_fetch import FetchResult, HTMLFetcher
from crawler.parse_jobs import parse_jobs, parse_jobs_from_html

logger = logging.getLogger(__name__)

NO_JOBS_ERROR = 'No jobs found after trying all methods'


class ScrapeMethod(str, Enum):
    HTTP = 'http'
    BROWSER = 'browser'


class ScrapePhase(Enum):
    HTTP_ATTEMPT = 'http_attempt'
    BROWSER_FALLBACK = 'browser_fallback'
    TERMINAL = 'terminal'


class FetchError(Exception):
    """A fetch strategy reported failure; raised so the retry policy sees it."""


def needs_browser_fallback(jobs: List[NormalizedJob]) -> bool:
    """Escalate to the browser iff the HTTP path produced no usable jobs."""
    return len(jobs) == 0


def next_phase(phase: ScrapePhase, jobs: List[NormalizedJob]) -> ScrapePhase:
    if phase is ScrapePhase.HTTP_ATTEMPT and needs_browser_fallback(jobs):
        return ScrapePhase.BROWSER_FALLBACK
    return ScrapePhase.TERMINAL


class ScrapeResult:
    """Outcome for one site in one run"""

    def __init__(self, site: str, success: bool, jobs: Optional[List[NormalizedJob]] = None,
                 error: Optional[str] = None, method: Optional[ScrapeMethod] = None):
        self.site = site
        self.success = success
        self.jobs = list(jobs or [])
        self.error = error
        self.method = method

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'site': self.site,
            'success': self.success,
            'jobs': [job.to_dict() for job in self.jobs],
        }
        if self.error is not None:
            data['error'] = self.error
        if self.method is not None:
            data['method'] = self.method.value
        return data

    def __repr__(self):
        return (f"ScrapeResult(site={self.site!r}, success={self.success}, jobs={len(self.jobs)}, "
                f"method={self.method.value if self.method else None})")


class SiteScraper:
    """Runs the HTTP -> browser fallback state machine for one site at a time"""

    def __init__(
        self,
        http_fetcher: HTMLFetcher,
        browser_crawler: BrowserCrawler,
        settings: Optional[ScraperSettings] = None,
        event_log: Optional[EventLog] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.http_fetcher = http_fetcher
        self.browser_crawler = browser_crawler
        self.settings = settings or ScraperSettings()
        self.event_log = event_log or EventLog()
        self.sleep = sleep

    def _retry_options(self) -> RetryOptions:
        return RetryOptions.from_settings(self.settings, max_retries=self.settings.strategy_max_retries)

    async def _http_attempt(self, site: SiteConfig) -> List[NormalizedJob]:
        site_label = site.company
        self.event_log.info("Attempting HTTP approach", site_label)

        async def fetch() -> FetchResult:
            result = await self.http_fetcher.fetch_html(site.url, site_label)
            if not result.success or result.soup is None:
                raise FetchError(result.error or 'HTTP fetch failed')
            return result

        try:
            result = await with_retry(fetch, site_label, self._retry_options(), self.event_log, self.sleep)
        except Exception as e:
            self.event_log.warn("HTTP approach failed, will try browser", site_label, {'error': str(e)})
            return []

        raw_jobs = parse_jobs(result.soup, site, self.event_log, self.settings.description_max_length)
        if not raw_jobs:
            self.event_log.warn("HTTP approach found 0 jobs, trying browser", site_label)
            return []

        jobs = normalize_jobs(raw_jobs, site_label, self.event_log)
        self.event_log.success(f"HTTP approach found {len(jobs)} jobs", site_label)
        return jobs

    async def _browser_fallback(self, site: SiteConfig) -> List[NormalizedJob]:
        site_label = site.company
        self.event_log.info("Falling back to browser", site_label)
        extra = [site.selectors.job_container] if site.selectors and site.selectors.job_container else []

        async def fetch() -> BrowserResult:
            result = await self.browser_crawler.fetch_with_browser(site.url, site_label, extra)
            if not result.success or not result.html:
                raise FetchError(result.error or 'Browser fetch failed')
            return result

        try:
            result = await with_retry(fetch, site_label, self._retry_options(), self.event_log, self.sleep)
        except Exception as e:
            self.event_log.error("Browser approach also failed", site_label, {'error': str(e)})
            return []

        raw_jobs = parse_jobs_from_html(result.html, site, self.event_log, self.settings.description_max_length)
        jobs = normalize_jobs(raw_jobs, site_label, self.event_log)
        self.event_log.success(f"Browser found {len(jobs)} jobs", site_label)
        return jobs

    async def scrape_site(self, site: SiteConfig) -> ScrapeResult:
        """Scrape one site. Never raises except on cancellation."""
        site_label = site.company
        jobs: List[NormalizedJob] = []
        method = ScrapeMethod.HTTP
        phase = ScrapePhase.HTTP_ATTEMPT

        try:
            self.event_log.info("Starting scrape", site_label, {'url': site.url})

            while phase is not ScrapePhase.TERMINAL:
                if phase is ScrapePhase.HTTP_ATTEMPT:
                    method = ScrapeMethod.HTTP
                    jobs = await self._http_attempt(site)
                else:
                    method = ScrapeMethod.BROWSER
                    jobs = await self._browser_fallback(site)
                phase = next_phase(phase, jobs)
        except Exception as e:
            logger.error(f"[scraper] Unexpected failure scraping {site_label}: {e}", exc_info=True)
            self.event_log.error("Site scraping failed completely", site_label, {'error': str(e)})
            return ScrapeResult(site_label, False, error=str(e) or e.__class__.__name__, method=method)

        if not jobs:
            self.event_log.error("No jobs found with any method", site_label)
            return ScrapeResult(site_label, False, error=NO_JOBS_ERROR, method=method)

        self.event_log.success(f"Successfully scraped {len(jobs)} jobs", site_label, {'method': method.value})
        return ScrapeResult(site_label, True, jobs=jobs, method=method)
