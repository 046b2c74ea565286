"""
Browser fetch strategy using Playwright for JavaScript-rendered career pages.

BrowserSession owns the single headless Chromium process of a run; the
aggregator acquires it lazily through the crawler and releases it when the
run ends. Each fetch gets its own browser context so sites never share
cookies or storage.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from core.event_log import EventLog
from core.scraper_config import USER_AGENTS, ScraperSettings

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
]

VIEWPORT = {'width': 1920, 'height': 1080}

# Tried in order after the settle delay; first one that attaches wins
JOB_CONTAINER_SELECTORS = [
    '[role="listitem"]',
    '.job-card',
    '.position-card',
    '[data-testid="job-card"]',
    'article',
    '.base-card',
]


class BrowserResult:
    """Outcome of one browser fetch"""

    def __init__(self, success: bool, html: Optional[str] = None, error: Optional[str] = None,
                 matched_selector: Optional[str] = None):
        self.success = success
        self.html = html
        self.error = error
        self.matched_selector = matched_selector

    def __repr__(self):
        if self.success:
            return f"BrowserResult(success=True, html_length={len(self.html or '')})"
        return f"BrowserResult(success=False, error={self.error!r})"


class BrowserSession:
    """
    Explicitly owned handle to the shared headless browser.

    The browser is launched on the first acquire() and relaunched if it
    disconnects. release() closes it and is safe to call any number of
    times, including when nothing was launched.

    Args:
        event_log: Run event log
        launcher: Optional coroutine function returning a Browser-like
            object; replaces the Playwright launch (used by tests)
    """

    def __init__(self, event_log: Optional[EventLog] = None,
                 launcher: Optional[Callable[[], Awaitable[Any]]] = None):
        self.event_log = event_log or EventLog()
        self._launcher = launcher
        self._browser = None
        self._playwright = None
        self._lock: Optional[asyncio.Lock] = None
        self.launch_count = 0

    def _get_lock(self) -> asyncio.Lock:
        # Built on first use so it belongs to the loop that runs the scrape
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _launch(self):
        if self._launcher is not None:
            return await self._launcher()
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(headless=True, args=BROWSER_ARGS)

    async def acquire(self):
        """Return the shared browser, launching it if needed."""
        async with self._get_lock():
            if self._browser is None or not self._browser.is_connected():
                self.event_log.info("Launching headless browser")
                self._browser = await self._launch()
                self.launch_count += 1
            return self._browser

    async def release(self):
        """Close the browser and stop Playwright. Failures are logged, not raised."""
        async with self._get_lock():
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None

        if browser is not None:
            try:
                if browser.is_connected():
                    await browser.close()
                self.event_log.info("Browser closed")
            except Exception as e:
                logger.error(f"[browser] Failed to close browser: {e}")
                self.event_log.error("Failed to close browser", data={'error': str(e)})

        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.error(f"[browser] Failed to stop Playwright: {e}")

    async def __aenter__(self) -> 'BrowserSession':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.release()


class BrowserCrawler:
    """Headless-browser strategy"""

    def __init__(self, session: BrowserSession, settings: Optional[ScraperSettings] = None,
                 event_log: Optional[EventLog] = None):
        self.session = session
        self.settings = settings or ScraperSettings()
        self.event_log = event_log or session.event_log

    async def _wait_for_job_containers(self, page, site_label: str,
                                       extra_selectors: Sequence[str] = ()) -> Optional[str]:
        selectors: List[str] = [s for s in extra_selectors if s] + JOB_CONTAINER_SELECTORS
        timeout_ms = self.settings.selector_timeout * 1000

        for selector in selectors:
            try:
                await page.wait_for_selector(selector, timeout=timeout_ms, state='attached')
            except PlaywrightError:
                continue
            self.event_log.success(f"Found job containers with selector: {selector}", site_label)
            return selector

        self.event_log.warn("No job container selectors found, continuing anyway", site_label)
        return None

    async def _close_quietly(self, page, context):
        for resource in (page, context):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.debug(f"[browser] Ignoring close error: {e}")

    async def fetch_with_browser(self, url: str, site_label: str,
                                 extra_selectors: Sequence[str] = ()) -> BrowserResult:
        """
        Render a page and capture its final HTML.

        Args:
            url: Page to load
            site_label: Site name for log events
            extra_selectors: Site-specific container selectors tried before
                the generic list

        Returns:
            BrowserResult; never raises for navigation or browser errors
        """
        log = self.event_log
        context = None
        page = None
        timeout_ms = self.settings.playwright_timeout * 1000

        try:
            browser = await self.session.acquire()
            context = await browser.new_context(user_agent=USER_AGENTS[0], viewport=VIEWPORT)
            page = await context.new_page()
            page.set_default_timeout(timeout_ms)

            log.info("Navigating to URL", site_label, {'url': url})
            await page.goto(url, wait_until='domcontentloaded', timeout=timeout_ms)

            log.info("Waiting for dynamic content", site_label)
            await page.wait_for_timeout(self.settings.wait_for_selector * 1000)

            matched = await self._wait_for_job_containers(page, site_label, extra_selectors)
            html = await page.content()

            if not html or len(html) < self.settings.min_html_length:
                log.error("Empty or insufficient HTML from browser", site_label, {'length': len(html or '')})
                return BrowserResult(False, error='Empty HTML content')

            log.success("Successfully fetched HTML with browser", site_label, {'htmlLength': len(html)})
            return BrowserResult(True, html=html, matched_selector=matched)
        except Exception as e:
            message = str(e) or e.__class__.__name__
            log.error("Browser fetch failed", site_label, {'error': message})
            return BrowserResult(False, error=message)
        finally:
            await self._close_quietly(page, context)
