"""
Job records passed between the parser, the normalizer and the aggregator.
"""
from typing import Any, Dict, List, Optional

DEFAULT_LOCATION = 'Not specified'
EXTERNAL_RECRUITER_ID = 'external_scraper'
EXTERNAL_SOURCE = 'external'


class RawJobRecord:
    """A job card as extracted from a page, before validation"""

    def __init__(
        self,
        title: str,
        company: str,
        url: str,
        location: str = DEFAULT_LOCATION,
        description: Optional[str] = None,
        job_type: Optional[str] = None,
        posted_date: Optional[str] = None,
    ):
        self.title = title
        self.company = company
        self.url = url
        self.location = location or DEFAULT_LOCATION
        self.description = description
        self.job_type = job_type
        self.posted_date = posted_date

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'title': self.title,
            'company': self.company,
            'location': self.location,
            'url': self.url,
        }
        if self.description is not None:
            data['description'] = self.description
        if self.job_type is not None:
            data['jobType'] = self.job_type
        if self.posted_date is not None:
            data['postedDate'] = self.posted_date
        return data

    def __repr__(self):
        return f"RawJobRecord(title={self.title!r}, url={self.url!r})"


class NormalizedJob:
    """Canonical external job, ready for the platform's job store"""

    status = 'open'
    openings = 1
    salary = 0
    recruiter_id = EXTERNAL_RECRUITER_ID
    source = EXTERNAL_SOURCE
    scrape_status = 'success'

    def __init__(
        self,
        id: str,
        title: str,
        description: str,
        role: str,
        experience: int,
        location: str,
        company_id: str,
        company_name: str,
        tech_stack: List[str],
        external_url: str,
        scraped_at: str,
        job_type: Optional[str] = None,
        posted_date: Optional[str] = None,
    ):
        self.id = id
        self.title = title
        self.description = description
        self.role = role
        self.experience = experience
        self.location = location
        self.company_id = company_id
        self.company_name = company_name
        self.tech_stack = list(tech_stack) or ['General']
        self.external_url = external_url
        self.scraped_at = scraped_at
        self.created_at = scraped_at
        self.job_type = job_type
        self.posted_date = posted_date

    @property
    def external_company(self) -> str:
        return self.company_name

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'role': self.role,
            'salary': self.salary,
            'experience': self.experience,
            'location': self.location,
            'status': self.status,
            'openings': self.openings,
            'companyId': self.company_id,
            'companyName': self.company_name,
            'recruiterId': self.recruiter_id,
            'techStack': list(self.tech_stack),
            'createdAt': self.created_at,
            'source': self.source,
            'externalCompany': self.external_company,
            'externalUrl': self.external_url,
            'scrapedAt': self.scraped_at,
            'scrapeStatus': self.scrape_status,
        }
        if self.job_type is not None:
            data['jobType'] = self.job_type
        if self.posted_date is not None:
            data['postedDate'] = self.posted_date
        return data

    def __repr__(self):
        return f"NormalizedJob(id={self.id!r}, title={self.title!r}, external_url={self.external_url!r})"
