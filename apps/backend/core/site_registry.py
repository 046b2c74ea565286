"""
Site registry: the configurable list of career pages to scrape.
"""
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.scraper_config import load_config_file

logger = logging.getLogger(__name__)


class SiteSelectors(BaseModel):
    """CSS selector hints for one site. Every field is optional."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')

    job_container: Optional[str] = Field(default=None, alias='jobContainer')
    title: Optional[str] = None
    location: Optional[str] = None
    link: Optional[str] = None
    description: Optional[str] = None


class SiteConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra='ignore')

    company: str
    url: str
    enabled: bool = True
    selectors: Optional[SiteSelectors] = None

    @field_validator('company')
    @classmethod
    def _company_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('company must not be empty')
        return value

    @field_validator('url')
    @classmethod
    def _absolute_http_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f'url must be an absolute http(s) URL: {value!r}')
        return value

    @property
    def origin(self) -> str:
        """Scheme + host of the site URL, used to resolve relative links."""
        parsed = urlparse(self.url)
        return f"{parsed.scheme}://{parsed.netloc}"


class SiteRegistry:
    """Ordered, read-only collection of SiteConfig entries"""

    def __init__(self, sites: Iterable[Union[SiteConfig, Dict[str, Any]]] = ()):
        self._sites: List[SiteConfig] = [
            site if isinstance(site, SiteConfig) else SiteConfig.model_validate(site)
            for site in sites
        ]

    def __iter__(self) -> Iterator[SiteConfig]:
        return iter(self._sites)

    def __len__(self) -> int:
        return len(self._sites)

    def __repr__(self):
        return f"SiteRegistry(sites={len(self._sites)}, enabled={len(self.enabled_sites())})"

    @property
    def sites(self) -> List[SiteConfig]:
        return list(self._sites)

    def enabled_sites(self) -> List[SiteConfig]:
        """Enabled entries, in registry order."""
        return [site for site in self._sites if site.enabled]

    def get(self, company: str) -> Optional[SiteConfig]:
        for site in self._sites:
            if site.company.lower() == company.lower():
                return site
        return None

    @classmethod
    def from_entries(cls, entries: Iterable[Dict[str, Any]]) -> 'SiteRegistry':
        """
        Build a registry from raw dict entries, skipping invalid ones.

        Invalid entries are logged rather than aborting the whole registry,
        so one typo in the YAML file does not disable every other site.
        """
        sites = []
        for index, entry in enumerate(entries):
            try:
                sites.append(SiteConfig.model_validate(entry))
            except ValidationError as e:
                logger.error(f"[registry] Skipping invalid site entry #{index}: {e.errors()}")
        return cls(sites)


def load_site_registry(path: Optional[Union[str, Path]] = None) -> SiteRegistry:
    """Load the `sites:` list from the scraper config file."""
    data = load_config_file(path)
    entries = data.get('sites') or []
    if not isinstance(entries, list):
        logger.error(f"[registry] `sites` must be a list, got {type(entries).__name__}")
        entries = []

    registry = SiteRegistry.from_entries(entries)
    logger.info(f"[registry] Loaded {len(registry)} sites ({len(registry.enabled_sites())} enabled)")
    return registry
