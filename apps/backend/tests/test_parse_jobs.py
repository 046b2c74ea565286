"""
Tests for job card extraction from career pages.
"""
import pytest

from core.event_log import EventLog
from core.site_registry import SiteConfig
from crawler.html_fetch import make_soup
from crawler.parse_jobs import (
    candidate_patterns,
    detect_job_type,
    parse_jobs,
    parse_jobs_from_html,
    resolve_link,
    truncate,
)

CONFIGURED_PAGE = """
<html><body>
  <div class="opening">
    <h4>Backend Engineer</h4>
    <span class="where">Pune, India</span>
    <a class="apply" href="/jobs/101">Apply</a>
    <p>Full-time role building APIs.</p>
    <time datetime="2024-02-15T09:00:00Z">Feb 15</time>
  </div>
  <div class="opening">
    <h4>Frontend Engineer</h4>
    <a class="apply" href="https://acme.example/jobs/102">Apply</a>
  </div>
  <div class="opening">
    <h4>Card without a link</h4>
  </div>
</body></html>
"""

ARTICLE_PAGE = """
<html><body>
  <article>
    <h2>Data Analyst</h2>
    <div class="job-location">Remote</div>
    <a href="/j/1">View role</a>
  </article>
  <article>
    <h2>Contract Designer</h2>
    <a href="#">Share</a>
    <a href="/j/2">View role</a>
  </article>
  <article>
    <h2>Placeholder</h2>
    <a href="javascript:void(0)">Open</a>
  </article>
</body></html>
"""

LISTITEM_PAGE = """
<html><body>
  <ul>
    <li role="listitem"><h3>Site Reliability Engineer</h3><a href="/r/9">Details</a></li>
  </ul>
</body></html>
"""


@pytest.fixture
def configured_site():
    return SiteConfig.model_validate({
        'company': 'Acme',
        'url': 'https://acme.example/careers?team=eng',
        'selectors': {'job_container': '.opening', 'title': 'h4', 'location': '.where', 'link': 'a.apply'},
    })


@pytest.fixture
def plain_site():
    return SiteConfig(company='Globex', url='https://globex.example/jobs')


def test_configured_selectors_extract_cards(configured_site):
    jobs = parse_jobs(make_soup(CONFIGURED_PAGE), configured_site, EventLog())

    assert [job.title for job in jobs] == ['Backend Engineer', 'Frontend Engineer']

    first, second = jobs
    assert first.company == 'Acme'
    assert first.url == 'https://acme.example/jobs/101'
    assert first.location == 'Pune, India'
    assert first.description == 'Full-time role building APIs.'
    assert first.job_type == 'Full-time'
    assert first.posted_date == '2024-02-15'

    assert second.url == 'https://acme.example/jobs/102'
    assert second.location == 'Not specified'
    assert second.description is None
    assert second.posted_date is None


def test_generic_article_pattern_and_unusable_links(plain_site):
    log = EventLog()
    jobs = parse_jobs_from_html(ARTICLE_PAGE, plain_site, log)

    assert [(job.title, job.url) for job in jobs] == [
        ('Data Analyst', 'https://globex.example/j/1'),
        ('Contract Designer', 'https://globex.example/j/2'),
    ]
    assert jobs[0].location == 'Remote'
    assert jobs[1].job_type == 'Contract'
    assert log.get_logs(level='success')[-1].message == 'Parsed 2 jobs from 3 elements'


def test_mail_and_phone_links_are_not_job_urls(plain_site):
    html = """
    <html><body>
      <article>
        <h2>Recruiter</h2>
        <a href="mailto:jobs@globex.example">Email us</a>
        <a href="/j/3">View role</a>
      </article>
      <article>
        <h2>Call Centre Lead</h2>
        <a href="tel:+911234567890">Call</a>
      </article>
    </body></html>
    """

    jobs = parse_jobs_from_html(html, plain_site, EventLog())

    assert [(job.title, job.url) for job in jobs] == [('Recruiter', 'https://globex.example/j/3')]


def test_configured_miss_falls_back_to_generic_patterns():
    site = SiteConfig.model_validate({
        'company': 'Initech',
        'url': 'https://initech.example/careers',
        'selectors': {'jobContainer': '.does-not-exist'},
    })
    log = EventLog()

    jobs = parse_jobs(make_soup(LISTITEM_PAGE), site, log)

    assert [job.title for job in jobs] == ['Site Reliability Engineer']
    assert jobs[0].url == 'https://initech.example/r/9'
    warnings = [e.message for e in log.get_logs(site='Initech', level='warn')]
    assert 'Configured selector found no jobs, trying generic selectors' in warnings


def test_invalid_configured_selector_is_skipped():
    site = SiteConfig.model_validate({
        'company': 'Initech',
        'url': 'https://initech.example/careers',
        'selectors': {'job_container': 'div['},
    })
    jobs = parse_jobs(make_soup(LISTITEM_PAGE), site, EventLog())
    assert len(jobs) == 1


def test_card_that_is_itself_a_link():
    site = SiteConfig.model_validate({
        'company': 'Hooli',
        'url': 'https://hooli.example/careers',
        'selectors': {'job_container': 'a.job-link'},
    })
    html = ('<html><body><a class="job-link" href="/careers/55"><h3>Mobile Engineer</h3></a>'
            '</body></html>')

    jobs = parse_jobs_from_html(html, site, EventLog())

    assert [(job.title, job.url) for job in jobs] == [('Mobile Engineer', 'https://hooli.example/careers/55')]


def test_no_matching_elements_returns_empty(plain_site):
    log = EventLog()
    html = '<html><body><div><p>We are not hiring right now.</p></div></body></html>'

    assert parse_jobs_from_html(html, plain_site, log) == []
    assert log.get_logs(level='error')[-1].message == 'No job elements found with any selector'


def test_unparseable_posted_date_dropped(plain_site):
    html = '<html><body><article><h2>Data Analyst</h2><a href="/j/1">x</a><time>soon</time></article></body></html>'
    jobs = parse_jobs_from_html(html, plain_site, EventLog())
    assert jobs[0].posted_date is None


def test_long_description_truncated(plain_site):
    body = 'word ' * 200
    html = f'<html><body><article><h2>Writer</h2><a href="/j/7">x</a><p>{body}</p></article></body></html>'

    jobs = parse_jobs_from_html(html, plain_site, EventLog(), description_max_length=500)

    assert len(jobs[0].description) == 503
    assert jobs[0].description.endswith('...')


def test_candidate_patterns_put_configured_first(configured_site, plain_site):
    assert candidate_patterns(configured_site)[0].container == '.opening'
    assert candidate_patterns(plain_site)[0].container == '[role="listitem"]'
    assert len(candidate_patterns(configured_site)) == len(candidate_patterns(plain_site)) + 1


def test_resolve_link(configured_site):
    assert resolve_link('/jobs/1', configured_site) == 'https://acme.example/jobs/1'
    assert resolve_link('https://other.example/x', configured_site) == 'https://other.example/x'
    assert resolve_link('', configured_site) == ''


@pytest.mark.parametrize('text,expected', [
    ('Full time, Bengaluru', 'Full-time'),
    ('PART-TIME position', 'Part-time'),
    ('Summer internship', 'Internship'),
    ('Permanent role', None),
])
def test_detect_job_type(text, expected):
    assert detect_job_type(text) == expected


def test_truncate_keeps_short_text():
    assert truncate('short', 10) == 'short'
