"""
End-to-end aggregation run over three fake career sites.

HTTP is served by httpx.MockTransport and the browser by a fake launcher,
so every layer between the aggregator and the network runs for real.
"""
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "apps" / "backend"))

from core.event_log import EventLog
from core.scraper_config import ScraperSettings
from core.site_registry import SiteRegistry
from crawler.browser_crawler import BrowserCrawler, BrowserSession
from crawler.html_fetch import HTMLFetcher
from crawler.site_scraper import NO_JOBS_ERROR, SiteScraper
from orchestrator import JobAggregator

STATIC_PAGE = """
<html><body>
  <h1>Join Acme</h1>
  <ul>
    <li role="listitem"><h3>Senior Python Developer</h3><span class="location">Pune</span>
        <a href="/jobs/1">Apply</a></li>
    <li role="listitem"><h3>Junior QA Analyst</h3><span class="location">Remote</span>
        <a href="/jobs/2">Apply</a></li>
    <li role="listitem"><h3>Senior Python Developer</h3><a href="/jobs/1">Apply again</a></li>
  </ul>
</body></html>
"""

APP_SHELL = (
    "<html><head><script src='/bundle.js'></script>" + "<meta name='x' content='y'>" * 10 + "</head>"
    "<body><div id='app'></div></body></html>"
)

RENDERED_PAGE = """
<html><body>
  <div class="position-card"><h3>Cloud Engineer - Platform</h3>
    <div class="position-location">Hyderabad</div><a href="/careers/job/77">View</a></div>
</body></html>
"""


def transport():
    def handler(request):
        host = request.url.host
        if host == 'acme.test':
            return httpx.Response(200, text=STATIC_PAGE)
        if host == 'globex.test':
            return httpx.Response(200, text=APP_SHELL)
        return httpx.Response(503, text='unavailable')

    return httpx.MockTransport(handler)


class FakePage:
    def __init__(self):
        self.url = None

    def set_default_timeout(self, timeout):
        pass

    async def goto(self, url, wait_until=None, timeout=None):
        self.url = url

    async def wait_for_timeout(self, ms):
        pass

    async def wait_for_selector(self, selector, timeout=None, state=None):
        pass

    async def content(self):
        if 'globex.test' in self.url:
            return RENDERED_PAGE
        return '<html></html>'

    async def close(self):
        pass


class FakeContext:
    async def new_page(self):
        return FakePage()

    async def close(self):
        pass


class FakeBrowser:
    def __init__(self):
        self.connected = True

    def is_connected(self):
        return self.connected

    async def new_context(self, **options):
        return FakeContext()

    async def close(self):
        self.connected = False


async def no_sleep(delay):
    pass


@pytest.mark.asyncio
async def test_full_run_mixes_http_browser_and_failure():
    browsers = []

    async def launcher():
        browsers.append(FakeBrowser())
        return browsers[-1]

    registry = SiteRegistry([
        {'company': 'Acme', 'url': 'https://acme.test/careers'},
        {'company': 'Globex', 'url': 'https://globex.test/careers'},
        {'company': 'Initech', 'url': 'https://initech.test/careers'},
        {'company': 'Umbrella', 'url': 'https://umbrella.test/careers', 'enabled': False},
    ])
    settings = ScraperSettings(retry_delay=0, wait_for_selector=0, selector_timeout=0)
    log = EventLog()
    session = BrowserSession(log, launcher=launcher)
    scraper = SiteScraper(
        HTMLFetcher(settings, log, transport=transport()),
        BrowserCrawler(session, settings, log),
        settings,
        log,
        sleep=no_sleep,
    )

    result = await JobAggregator(registry, settings, log, session, scraper).scrape_all_sites()

    assert result.success is True
    assert result.summary == {
        'total': 3,
        'successful': 2,
        'failed': 1,
        'jobsPerSite': {'Acme': 2, 'Globex': 1, 'Initech': 0},
    }
    assert result.errors == [f"Initech: {NO_JOBS_ERROR}"]

    titles = [job.title for job in result.jobs]
    assert titles == ['Senior Python Developer', 'Junior QA Analyst', 'Cloud Engineer - Platform']

    senior, junior, cloud = result.jobs
    assert senior.external_url == 'https://acme.test/jobs/1'
    assert senior.experience == 5
    assert senior.tech_stack == ['Python']
    assert junior.experience == 1
    assert cloud.role == 'Cloud Engineer'
    assert cloud.location == 'Hyderabad'
    assert cloud.external_url == 'https://globex.test/careers/job/77'

    methods = {r.site: r.method.value for r in result.results}
    assert methods == {'Acme': 'http', 'Globex': 'browser', 'Initech': 'browser'}

    # one shared browser for the run, closed at the end
    assert len(browsers) == 1
    assert browsers[0].connected is False
    assert session.is_running is False
    assert result.to_dict()['logSummary']['error'] >= 1
