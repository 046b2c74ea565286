"""
Job card extraction from a parsed career page.

Selection runs in priority order: the site's configured container selector
first, then the generic patterns below. The first pattern that matches at
least one element is used for the whole page.
"""
import logging
import re
from typing import Iterable, List, NamedTuple, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from dateutil import parser as date_parser

from core.event_log import EventLog
from core.models import DEFAULT_LOCATION, RawJobRecord
from core.site_registry import SiteConfig
from crawler.html_fetch import make_soup

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_LENGTH = 500


class SelectorPattern(NamedTuple):
    """Container selector plus the sub-selectors used inside each match"""
    name: str
    container: str
    title: Optional[str] = None
    location: Optional[str] = None
    link: Optional[str] = None
    description: Optional[str] = None


GENERIC_TITLE = 'h3, h2, .title, [class*="title"]'
GENERIC_LOCATION = '.location, [class*="location"], [class*="Location"]'
GENERIC_LINK = 'a'
GENERIC_DESCRIPTION = '.description, [class*="description"], p'

GENERIC_PATTERNS = [
    SelectorPattern('listitem', '[role="listitem"]', 'h3, h2, .title', '.location, [class*="location"]', 'a'),
    SelectorPattern('job-card', '.job-card, [class*="job-card"]', 'h3, h2, .title', '.location, [class*="location"]', 'a'),
    SelectorPattern('position', '.position-card, [class*="position"]', 'h3, h2, .title', '.location, [class*="location"]', 'a'),
    SelectorPattern('article', 'article', 'h3, h2, .title', '.location, [class*="location"]', 'a'),
    SelectorPattern('data-testid', '[data-testid*="job"]', 'h3, h2', '[class*="location"]', 'a'),
    SelectorPattern('card', '.base-card, [class*="card"]', 'h3, h2', '[class*="location"]', 'a'),
]

JOB_TYPE_PATTERN = re.compile(
    r'\b(full[\s-]?time|part[\s-]?time|contract|internship|temporary)\b', re.IGNORECASE
)
_JOB_TYPE_LABELS = {
    'fulltime': 'Full-time',
    'parttime': 'Part-time',
    'contract': 'Contract',
    'internship': 'Internship',
    'temporary': 'Temporary',
}


def configured_pattern(site: SiteConfig) -> Optional[SelectorPattern]:
    """The site's own selector hints as a pattern, if a container is configured."""
    selectors = site.selectors
    if selectors is None or not selectors.job_container:
        return None
    return SelectorPattern(
        'configured',
        selectors.job_container,
        selectors.title,
        selectors.location,
        selectors.link,
        selectors.description,
    )


def candidate_patterns(site: SiteConfig) -> List[SelectorPattern]:
    configured = configured_pattern(site)
    return ([configured] if configured else []) + list(GENERIC_PATTERNS)


def _select(root: Tag, selector: str) -> List[Tag]:
    try:
        return root.select(selector)
    except Exception as e:
        logger.warning(f"[parse] Invalid selector {selector!r}: {e}")
        return []


def select_job_elements(soup: BeautifulSoup, site: SiteConfig,
                        event_log: Optional[EventLog] = None) -> Tuple[Optional[SelectorPattern], List[Tag]]:
    """Return the first pattern with at least one match, and its matches."""
    event_log = event_log or EventLog()
    for pattern in candidate_patterns(site):
        elements = _select(soup, pattern.container)
        if elements:
            event_log.info(f"Found {len(elements)} elements with: {pattern.container}", site.company)
            return pattern, elements
        if pattern.name == 'configured':
            event_log.warn("Configured selector found no jobs, trying generic selectors", site.company)
    return None, []


def _first_text(element: Tag, selectors: Iterable[Optional[str]]) -> str:
    for selector in selectors:
        if not selector:
            continue
        for found in _select(element, selector):
            text = found.get_text(' ', strip=True)
            if text:
                return text
    return ''


def _usable_href(href: Optional[str]) -> str:
    href = (href or '').strip()
    if not href or href.startswith('#'):
        return ''
    # mailto:, tel:, javascript: and the like are not job pages
    if urlparse(href).scheme.lower() not in ('', 'http', 'https'):
        return ''
    return href


def _first_href(element: Tag, selectors: Iterable[Optional[str]]) -> str:
    for selector in selectors:
        if not selector:
            continue
        for found in _select(element, selector):
            href = _usable_href(found.get('href'))
            if href:
                return href
    # Cards that are themselves links
    if element.name == 'a':
        return _usable_href(element.get('href'))
    return ''


def resolve_link(href: str, site: SiteConfig) -> str:
    """Make a card link absolute against the site's origin."""
    if not href:
        return ''
    if href.startswith('http://') or href.startswith('https://'):
        return href
    return urljoin(site.origin, href)


def truncate(text: str, limit: int = DESCRIPTION_MAX_LENGTH) -> str:
    if len(text) > limit:
        return text[:limit] + '...'
    return text


def detect_job_type(text: str) -> Optional[str]:
    match = JOB_TYPE_PATTERN.search(text or '')
    if not match:
        return None
    key = re.sub(r'[\s-]', '', match.group(1).lower())
    return _JOB_TYPE_LABELS.get(key)


def extract_posted_date(element: Tag) -> Optional[str]:
    """ISO date from a <time> element, or None if absent/unparseable."""
    time_el = element.find('time')
    if time_el is None:
        return None
    raw = (time_el.get('datetime') or time_el.get_text(strip=True) or '').strip()
    if not raw:
        return None
    try:
        return date_parser.parse(raw).date().isoformat()
    except (ValueError, OverflowError):
        logger.debug(f"[parse] Unparseable posted date: {raw!r}")
        return None


def extract_job(element: Tag, site: SiteConfig, pattern: SelectorPattern,
                description_max_length: int = DESCRIPTION_MAX_LENGTH) -> Optional[RawJobRecord]:
    """
    Extract one job card. Returns None unless both title and link are found.

    Sub-selectors are tried as: the site's configured one, the matched
    pattern's, then the generic one.
    """
    configured = site.selectors

    title = _first_text(element, [
        configured.title if configured else None, pattern.title, GENERIC_TITLE,
    ])
    location = _first_text(element, [
        configured.location if configured else None, pattern.location, GENERIC_LOCATION,
    ]) or DEFAULT_LOCATION
    href = _first_href(element, [
        configured.link if configured else None, pattern.link, GENERIC_LINK,
    ])
    url = resolve_link(href, site)

    if not title or not url:
        return None

    description = _first_text(element, [
        configured.description if configured else None, pattern.description, GENERIC_DESCRIPTION,
    ])

    return RawJobRecord(
        title=title,
        company=site.company,
        url=url,
        location=location,
        description=truncate(description, description_max_length) if description else None,
        job_type=detect_job_type(element.get_text(' ', strip=True)),
        posted_date=extract_posted_date(element),
    )


def parse_jobs(soup: BeautifulSoup, site: SiteConfig, event_log: Optional[EventLog] = None,
               description_max_length: int = DESCRIPTION_MAX_LENGTH) -> List[RawJobRecord]:
    """
    Extract raw job records from a parsed page.

    Elements without a title or link are dropped silently; most of them are
    navigation or decoration that happened to match a generic pattern.
    """
    event_log = event_log or EventLog()
    site_label = site.company
    event_log.info("Starting job parsing", site_label)

    pattern, elements = select_job_elements(soup, site, event_log)
    if not elements:
        event_log.error("No job elements found with any selector", site_label)
        return []

    jobs: List[RawJobRecord] = []
    for index, element in enumerate(elements):
        try:
            job = extract_job(element, site, pattern, description_max_length)
        except Exception as e:
            event_log.warn(f"Error parsing job element {index}", site_label, {'error': str(e)})
            continue
        if job is not None:
            jobs.append(job)

    event_log.success(f"Parsed {len(jobs)} jobs from {len(elements)} elements", site_label)
    return jobs


def parse_jobs_from_html(html: str, site: SiteConfig, event_log: Optional[EventLog] = None,
                         description_max_length: int = DESCRIPTION_MAX_LENGTH) -> List[RawJobRecord]:
    """Parse rendered HTML (browser strategy output)."""
    return parse_jobs(make_soup(html), site, event_log, description_max_length)
