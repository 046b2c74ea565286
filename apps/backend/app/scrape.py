"""
Trigger endpoints for the external job aggregation pipeline.

The pipeline only returns jobs; persisting them is up to whoever calls
these routes.
"""
import os
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel

from orchestrator import AggregateResult, scrape_all_sites

logger = logging.getLogger(__name__)
router = APIRouter()

ScrapeRunner = Callable[[], Awaitable[AggregateResult]]


class ScrapeSummary(BaseModel):
    total: int
    successful: int
    failed: int
    jobsPerSite: Dict[str, int]
    totalScraped: int


class ScrapeResponse(BaseModel):
    success: bool
    message: str
    summary: ScrapeSummary
    errors: List[str]
    jobs: List[Dict[str, Any]]
    durationSeconds: float = 0.0


def get_scrape_runner() -> ScrapeRunner:
    """Dependency returning the aggregation entry point (overridden in tests)."""
    return scrape_all_sites


def require_cron_secret(authorization: Optional[str] = Header(None)):
    """Check the scheduler's bearer token when CRON_SECRET is configured."""
    secret = os.getenv("CRON_SECRET")
    if not secret:
        return
    if authorization != f"Bearer {secret}":
        logger.warning("[scrape] Rejected cron trigger with bad or missing token")
        raise HTTPException(status_code=401, detail="Unauthorized")


def _to_response(result: AggregateResult) -> ScrapeResponse:
    data = result.to_dict()
    summary = dict(data['summary'], totalScraped=result.total_jobs)
    if result.success:
        message = (f"Scraped {result.total_jobs} jobs from "
                   f"{summary['successful']}/{summary['total']} sites")
    else:
        message = "Job scraping failed"
    return ScrapeResponse(
        success=result.success,
        message=message,
        summary=ScrapeSummary(**summary),
        errors=data['errors'],
        jobs=data['jobs'],
        durationSeconds=data['durationSeconds'],
    )


async def _run(runner: ScrapeRunner, trigger: str) -> ScrapeResponse:
    logger.info(f"[scrape] Aggregation triggered via {trigger}")
    result = await runner()
    logger.info(f"[scrape] Aggregation finished: {result!r}")
    return _to_response(result)


@router.post("/api/jobs/scrape", response_model=ScrapeResponse)
async def trigger_scrape(runner: ScrapeRunner = Depends(get_scrape_runner)):
    """Run one aggregation over all enabled sites and return the jobs."""
    return await _run(runner, "api")


@router.get("/api/jobs/scrape")
async def scrape_usage():
    return {
        "message": "Job scraper endpoint",
        "usage": "POST to this endpoint to trigger job scraping",
        "cron": "GET /api/cron/scrape-jobs (Authorization: Bearer <CRON_SECRET>)",
    }


@router.get("/api/cron/scrape-jobs", response_model=ScrapeResponse)
async def cron_scrape(
    _: None = Depends(require_cron_secret),
    runner: ScrapeRunner = Depends(get_scrape_runner),
):
    """Scheduled trigger; same run as the POST endpoint."""
    return await _run(runner, "cron")
