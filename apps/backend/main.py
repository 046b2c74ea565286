from fastapi import FastAPI
from dotenv import load_dotenv
from contextlib import asynccontextmanager
import logging

from app.scrape import router as scrape_router
from core.scraper_config import load_settings, resolve_config_path
from core.site_registry import load_site_registry

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the scraper configuration the process will run with."""
    config_path = resolve_config_path()
    settings = load_settings(config_path)
    registry = load_site_registry(config_path)
    logger.info(f"[jobscraper] config: {config_path}")
    logger.info(f"[jobscraper] {len(registry.enabled_sites())}/{len(registry)} sites enabled, "
                f"concurrency {settings.concurrency}")
    yield


app = FastAPI(title="External Job Aggregator", version="0.1.0", lifespan=lifespan)

app.include_router(scrape_router)


@app.get("/api/healthz")
async def healthz():
    return {"status": "ok"}
