"""
Scraper configuration loader.
Reads tunables and the site registry from config/scraper.yaml, with
environment variable overrides for the tunables.
"""
import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / 'config' / 'scraper.yaml'

# Rotating user agents to avoid trivial bot detection
USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.1 Safari/605.1.15',
]

ACCEPT_LANGUAGES = [
    'en-US,en;q=0.9',
    'en-GB,en;q=0.9',
    'en;q=0.9',
]

# Default tunables (durations in seconds)
DEFAULT_SETTINGS: Dict[str, Any] = {
    'timeout': 30.0,
    'max_retries': 2,
    'retry_delay': 2.0,
    'exponential_backoff': True,
    'strategy_max_retries': 1,
    'concurrency': 3,
    'playwright_timeout': 45.0,
    'wait_for_selector': 5.0,
    'selector_timeout': 3.0,
    'max_redirects': 5,
    'min_html_length': 100,
    'min_body_text_length': 50,
    'description_max_length': 500,
}

# env var -> (setting name, parser)
ENV_OVERRIDES = {
    'JOBSCRAPER_TIMEOUT': ('timeout', float),
    'JOBSCRAPER_MAX_RETRIES': ('max_retries', int),
    'JOBSCRAPER_RETRY_DELAY': ('retry_delay', float),
    'JOBSCRAPER_EXPONENTIAL_BACKOFF': ('exponential_backoff', lambda v: v.strip().lower() in ('1', 'true', 'yes', 'on')),
    'JOBSCRAPER_CONCURRENCY': ('concurrency', int),
    'JOBSCRAPER_PLAYWRIGHT_TIMEOUT': ('playwright_timeout', float),
    'JOBSCRAPER_WAIT_FOR_SELECTOR': ('wait_for_selector', float),
}


class ScraperSettings:
    """Tunables for one aggregation run"""

    def __init__(
        self,
        timeout: float = DEFAULT_SETTINGS['timeout'],
        max_retries: int = DEFAULT_SETTINGS['max_retries'],
        retry_delay: float = DEFAULT_SETTINGS['retry_delay'],
        exponential_backoff: bool = DEFAULT_SETTINGS['exponential_backoff'],
        strategy_max_retries: int = DEFAULT_SETTINGS['strategy_max_retries'],
        concurrency: int = DEFAULT_SETTINGS['concurrency'],
        playwright_timeout: float = DEFAULT_SETTINGS['playwright_timeout'],
        wait_for_selector: float = DEFAULT_SETTINGS['wait_for_selector'],
        selector_timeout: float = DEFAULT_SETTINGS['selector_timeout'],
        max_redirects: int = DEFAULT_SETTINGS['max_redirects'],
        min_html_length: int = DEFAULT_SETTINGS['min_html_length'],
        min_body_text_length: int = DEFAULT_SETTINGS['min_body_text_length'],
        description_max_length: int = DEFAULT_SETTINGS['description_max_length'],
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if max_retries < 0 or strategy_max_retries < 0:
            raise ValueError("retry counts must be >= 0")
        if retry_delay < 0 or wait_for_selector < 0 or selector_timeout < 0:
            raise ValueError("delays must be >= 0")
        if timeout <= 0 or playwright_timeout <= 0:
            raise ValueError("timeouts must be > 0")

        self.timeout = float(timeout)
        self.max_retries = int(max_retries)
        self.retry_delay = float(retry_delay)
        self.exponential_backoff = bool(exponential_backoff)
        self.strategy_max_retries = int(strategy_max_retries)
        self.concurrency = int(concurrency)
        self.playwright_timeout = float(playwright_timeout)
        self.wait_for_selector = float(wait_for_selector)
        self.selector_timeout = float(selector_timeout)
        self.max_redirects = int(max_redirects)
        self.min_html_length = int(min_html_length)
        self.min_body_text_length = int(min_body_text_length)
        self.description_max_length = int(description_max_length)

    @classmethod
    def from_mapping(cls, values: Optional[Dict[str, Any]] = None, apply_env: bool = True) -> 'ScraperSettings':
        """
        Build settings from a mapping (e.g. the YAML `settings:` section).

        Unknown keys are ignored with a warning. Environment overrides are
        applied on top when apply_env is True.
        """
        merged = dict(DEFAULT_SETTINGS)
        for key, value in (values or {}).items():
            if key not in DEFAULT_SETTINGS:
                logger.warning(f"[config] Ignoring unknown setting: {key}")
                continue
            merged[key] = value

        if apply_env:
            merged.update(_env_overrides())

        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in DEFAULT_SETTINGS}

    def __repr__(self):
        return f"ScraperSettings(concurrency={self.concurrency}, timeout={self.timeout}, max_retries={self.max_retries})"


def _env_overrides() -> Dict[str, Any]:
    """Collect tunables overridden through JOBSCRAPER_* env vars."""
    overrides = {}
    for env_name, (setting, parse) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == '':
            continue
        try:
            overrides[setting] = parse(raw)
        except ValueError:
            logger.warning(f"[config] Ignoring invalid {env_name}={raw!r}")
    return overrides


def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.getenv('JOBSCRAPER_CONFIG')
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config_file(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load the raw YAML config. A missing or unreadable file yields {}."""
    config_path = resolve_config_path(path)

    if not config_path.exists():
        logger.warning(f"[config] Scraper config file not found: {config_path}. Using defaults.")
        return {}

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"[config] Error loading scraper config {config_path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.error(f"[config] Scraper config {config_path} is not a mapping, ignoring")
        return {}

    logger.info(f"[config] Loaded scraper config from {config_path}")
    return data


def load_settings(path: Optional[Union[str, Path]] = None) -> ScraperSettings:
    """Load tunables: defaults < YAML `settings:` < JOBSCRAPER_* env vars."""
    data = load_config_file(path)
    return ScraperSettings.from_mapping(data.get('settings') or {})
