"""
Job aggregation orchestrator: scrapes every enabled site under a bounded
concurrency pool and merges the results into one run summary.
"""
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from core.event_log import EventLog
from core.models import NormalizedJob
from core.scraper_config import ScraperSettings, load_settings
from core.site_registry import SiteConfig, SiteRegistry, load_site_registry
from crawler.browser_crawler import BrowserCrawler, BrowserSession
from crawler.html_fetch import HTMLFetcher
from crawler.site_scraper import ScrapeResult, SiteScraper

logger = logging.getLogger(__name__)


class AggregateResult:
    """Outcome of one aggregation run"""

    def __init__(
        self,
        success: bool,
        jobs: Optional[List[NormalizedJob]] = None,
        results: Optional[List[ScrapeResult]] = None,
        summary: Optional[Dict[str, Any]] = None,
        errors: Optional[List[str]] = None,
        duration_seconds: float = 0.0,
        log_summary: Optional[Dict[str, int]] = None,
    ):
        self.success = success
        self.jobs = list(jobs or [])
        self.results = list(results or [])
        self.summary = summary or {'total': 0, 'successful': 0, 'failed': 0, 'jobsPerSite': {}}
        self.errors = list(errors or [])
        self.duration_seconds = duration_seconds
        self.log_summary = log_summary or {}

    @property
    def total_jobs(self) -> int:
        return len(self.jobs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'totalJobs': self.total_jobs,
            'jobs': [job.to_dict() for job in self.jobs],
            'results': [result.to_dict() for result in self.results],
            'summary': {
                'total': self.summary['total'],
                'successful': self.summary['successful'],
                'failed': self.summary['failed'],
                'jobsPerSite': dict(self.summary['jobsPerSite']),
            },
            'errors': list(self.errors),
            'durationSeconds': self.duration_seconds,
            'logSummary': dict(self.log_summary),
        }

    def __repr__(self):
        return (f"AggregateResult(success={self.success}, total_jobs={self.total_jobs}, "
                f"successful={self.summary['successful']}, failed={self.summary['failed']})")


class JobAggregator:
    """
    Runs the site scraper over all enabled sites.

    The aggregator owns the run's BrowserSession and always releases it
    before returning, whether the run succeeded, partially failed or hit
    an unexpected exception.
    """

    def __init__(
        self,
        registry: SiteRegistry,
        settings: Optional[ScraperSettings] = None,
        event_log: Optional[EventLog] = None,
        browser_session: Optional[BrowserSession] = None,
        site_scraper: Optional[SiteScraper] = None,
    ):
        self.registry = registry
        self.settings = settings or ScraperSettings()
        self.event_log = event_log or EventLog()
        self.browser_session = browser_session or BrowserSession(self.event_log)
        self.site_scraper = site_scraper or SiteScraper(
            HTMLFetcher(self.settings, self.event_log),
            BrowserCrawler(self.browser_session, self.settings, self.event_log),
            self.settings,
            self.event_log,
        )

    async def _scrape_with_limit(self, semaphore: asyncio.Semaphore, site: SiteConfig) -> ScrapeResult:
        async with semaphore:
            return await self.site_scraper.scrape_site(site)

    async def _scrape_sites(self, sites: List[SiteConfig]) -> List[ScrapeResult]:
        """Scrape concurrently; results come back in `sites` order."""
        semaphore = asyncio.Semaphore(self.settings.concurrency)
        tasks = [asyncio.ensure_future(self._scrape_with_limit(semaphore, site)) for site in sites]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _merge(self, results: List[ScrapeResult]):
        jobs: List[NormalizedJob] = []
        errors: List[str] = []
        jobs_per_site: Dict[str, int] = {}
        seen_urls = set()
        successful = 0
        failed = 0

        for result in results:
            jobs_per_site[result.site] = len(result.jobs)

            if result.success and result.jobs:
                successful += 1
                for job in result.jobs:
                    if job.external_url in seen_urls:
                        self.event_log.warn("Skipping job already scraped from another site", result.site,
                                            {'url': job.external_url})
                        continue
                    seen_urls.add(job.external_url)
                    jobs.append(job)
            else:
                failed += 1
                if result.error:
                    errors.append(f"{result.site}: {result.error}")

        summary = {
            'total': len(results),
            'successful': successful,
            'failed': failed,
            'jobsPerSite': jobs_per_site,
        }
        return jobs, summary, errors

    async def scrape_all_sites(self) -> AggregateResult:
        """Perform one full aggregation run. Never raises except on cancellation."""
        start_time = time.monotonic()
        log = self.event_log
        enabled_sites: List[SiteConfig] = []

        try:
            enabled_sites = self.registry.enabled_sites()
            log.info(f"🚀 Starting job aggregation: {len(enabled_sites)}/{len(self.registry)} sites enabled, "
                     f"concurrency {self.settings.concurrency}")

            results = await self._scrape_sites(enabled_sites)
            jobs, summary, errors = self._merge(results)
        except Exception as e:
            logger.error(f"[aggregator] Pipeline failed: {e}", exc_info=True)
            log.error("Pipeline failed", data={'error': str(e)})
            return AggregateResult(
                success=False,
                summary={'total': 0, 'successful': 0, 'failed': len(enabled_sites), 'jobsPerSite': {}},
                errors=[str(e) or e.__class__.__name__],
                duration_seconds=round(time.monotonic() - start_time, 2),
                log_summary=log.get_summary(),
            )
        finally:
            # Covers cancellation too; release() is idempotent
            await self.browser_session.release()

        duration = round(time.monotonic() - start_time, 2)
        log.success(f"Pipeline complete in {duration}s: {len(jobs)} jobs, "
                    f"{summary['successful']}/{summary['total']} sites succeeded")
        if summary['failed']:
            log.warn(f"Failed sites: {summary['failed']}")

        return AggregateResult(
            success=True,
            jobs=jobs,
            results=results,
            summary=summary,
            errors=errors,
            duration_seconds=duration,
            log_summary=log.get_summary(),
        )


async def scrape_all_sites(
    registry: Optional[SiteRegistry] = None,
    settings: Optional[ScraperSettings] = None,
    event_log: Optional[EventLog] = None,
) -> AggregateResult:
    """
    Entry point for callers: one aggregation run over the configured sites.

    With no arguments the registry and tunables come from the scraper
    config file (see core.scraper_config).
    """
    aggregator = JobAggregator(
        registry if registry is not None else load_site_registry(),
        settings if settings is not None else load_settings(),
        event_log,
    )
    return await aggregator.scrape_all_sites()
