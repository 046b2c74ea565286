"""
Normalization of scraped job cards into the canonical external job schema.

- Per-record validation with logged rejection reasons
- Whitespace cleanup
- Keyword heuristics for experience and tech stack
- Stable synthetic ids
- Per-batch deduplication by source URL
"""
import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from core.event_log import EventLog
from core.models import NormalizedJob, RawJobRecord, DEFAULT_LOCATION

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3

# Titles containing these are page chrome, not job cards
NON_JOB_MARKERS = ('cookie', 'privacy policy')

# "3 years", "3+ years", "5-7 years", "2 to 4 yrs"
EXPERIENCE_PATTERN = re.compile(r'(\d+)\s*(?:[-+]|to)?\s*(?:\d+\s*)?(?:years?|yrs?)', re.IGNORECASE)

# Seniority keyword -> years, checked in order
SENIORITY_KEYWORDS = [
    (('senior', 'lead', 'principal'), 5),
    (('mid', 'intermediate'), 3),
    (('junior', 'entry'), 1),
]
DEFAULT_EXPERIENCE = 2

TECH_KEYWORDS = [
    'javascript', 'typescript', 'python', 'java', 'c++', 'c#', 'ruby', 'php', 'go', 'rust',
    'react', 'angular', 'vue', 'node', 'express', 'django', 'flask', 'spring',
    'aws', 'azure', 'gcp', 'docker', 'kubernetes', 'jenkins',
    'mongodb', 'postgresql', 'mysql', 'redis', 'elasticsearch',
    'machine learning', 'ai', 'data science', 'devops', 'cloud',
]
DEFAULT_TECH_STACK = ['General']

_WHITESPACE = re.compile(r'\s+')


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace runs (including newlines) and trim."""
    if not text:
        return ''
    return _WHITESPACE.sub(' ', text).strip()


def derive_role(title: str) -> str:
    """Role is the part of the title before the first '-'."""
    role = title.split('-', 1)[0].strip()
    return role or title


def extract_experience(title: str, description: Optional[str] = None) -> int:
    """
    Infer required years of experience.

    An explicit "N years" mention wins; otherwise seniority keywords
    decide, defaulting to 2.
    """
    text = f"{title} {description or ''}".lower()

    match = EXPERIENCE_PATTERN.search(text)
    if match:
        return int(match.group(1))

    for keywords, years in SENIORITY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return years

    return DEFAULT_EXPERIENCE


def extract_tech_stack(title: str, description: Optional[str] = None) -> List[str]:
    """Substring-match the tech vocabulary, keeping vocabulary order."""
    text = f"{title} {description or ''}".lower()
    stack = [tech[0].upper() + tech[1:] for tech in TECH_KEYWORDS if tech in text]
    return stack or list(DEFAULT_TECH_STACK)


def company_id_for(company: str) -> str:
    return 'external_' + _WHITESPACE.sub('_', company.strip().lower())


def _base36(number: int) -> str:
    digits = '0123456789abcdefghijklmnopqrstuvwxyz'
    if number == 0:
        return '0'
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return ''.join(reversed(out))


def make_job_id(url: str, now: Optional[datetime] = None) -> str:
    """
    Synthetic id: ext_<url hash>_<millisecond timestamp in base 36>.

    Same URL within the same millisecond gives the same id.
    """
    now = now or datetime.now(timezone.utc)
    url_hash = hashlib.sha256(url.encode('utf-8')).hexdigest()[:16]
    millis = int(now.timestamp() * 1000)
    return f"ext_{url_hash}_{_base36(millis)}"


def rejection_reason(job: RawJobRecord) -> Optional[str]:
    """Why a raw record is rejected, or None if it is acceptable."""
    title = clean_text(job.title)
    if len(title) < MIN_TITLE_LENGTH:
        return 'title too short'

    url = (job.url or '').strip()
    if not url or not url.startswith('http'):
        return 'invalid URL'

    lowered = title.lower()
    if any(marker in lowered for marker in NON_JOB_MARKERS):
        return 'non-job content'

    return None


def normalize_job(
    job: RawJobRecord,
    site_label: str,
    event_log: Optional[EventLog] = None,
    now: Optional[datetime] = None,
) -> Optional[NormalizedJob]:
    """Validate and convert one raw record. Returns None when rejected."""
    reason = rejection_reason(job)
    if reason:
        (event_log or EventLog()).warn(f"Rejected: {reason}", site_label, {'title': job.title, 'url': job.url})
        return None

    now = now or datetime.now(timezone.utc)
    company = clean_text(job.company) or site_label
    title = clean_text(job.title)
    location = clean_text(job.location) or DEFAULT_LOCATION
    if job.description:
        description = clean_text(job.description)
    else:
        description = f"{title} position at {company}"
    url = job.url.strip()

    return NormalizedJob(
        id=make_job_id(url, now),
        title=title,
        description=description,
        role=derive_role(title),
        experience=extract_experience(title, description),
        location=location,
        company_id=company_id_for(company),
        company_name=company,
        tech_stack=extract_tech_stack(title, description),
        external_url=url,
        scraped_at=now.isoformat(),
        job_type=job.job_type,
        posted_date=job.posted_date,
    )


def normalize_jobs(
    raw_jobs: Iterable[RawJobRecord],
    site_label: str,
    event_log: Optional[EventLog] = None,
    now: Optional[datetime] = None,
) -> List[NormalizedJob]:
    """
    Normalize a batch, dropping invalid records and duplicate URLs.

    The first valid record for a URL wins; later records with the same URL
    are skipped with a warning.
    """
    raw_jobs = list(raw_jobs)
    event_log = event_log or EventLog()
    now = now or datetime.now(timezone.utc)
    normalized: List[NormalizedJob] = []
    seen_urls = set()

    for job in raw_jobs:
        url = (job.url or '').strip()
        if url in seen_urls:
            event_log.warn("Skipping duplicate job", site_label, {'url': url})
            continue

        normalized_job = normalize_job(job, site_label, event_log, now)
        if normalized_job is not None:
            normalized.append(normalized_job)
            seen_urls.add(url)

    event_log.success(f"Normalized {len(normalized)}/{len(raw_jobs)} jobs", site_label)
    return normalized
