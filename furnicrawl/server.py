"""FastAPI trigger endpoint for starting crawls over HTTP."""

from __future__ import annotations

import os
import secrets

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from furnicrawl.errors import ConfigurationError
from furnicrawl.logging_config import get_logger
from furnicrawl.orchestrator import CrawlOrchestrator
from furnicrawl.retailers import registry
from furnicrawl.trigger import RunSupervisor

LOGGER = get_logger(__name__)


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_key: str | None = Field(default=None, alias="apiKey")
    retailer: str | None = None
    category_url: str | None = Field(default=None, alias="categoryUrl")


def create_app(
    supervisor: RunSupervisor | None = None,
    *,
    api_key: str | None = None,
    default_retailer: str = "ikea",
) -> FastAPI:
    supervisor = supervisor or RunSupervisor(CrawlOrchestrator)
    expected_key = api_key if api_key is not None else os.getenv("FURNICRAWL_API_KEY")

    app = FastAPI(title="FurniCrawl Trigger")
    app.state.supervisor = supervisor

    @app.get("/")
    def index() -> dict[str, object]:
        return {
            "service": "furnicrawl",
            "endpoints": {
                "POST /api/scrape": "Start a crawl (body: apiKey, retailer?, categoryUrl?)",
                "GET /api/runs/{run_id}": "Run status and summary",
                "GET /healthz": "Liveness probe",
            },
            "retailers": registry.supported_retailers(),
        }

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/scrape")
    def scrape(request: ScrapeRequest) -> dict[str, object]:
        if not expected_key or not request.api_key or not secrets.compare_digest(request.api_key, expected_key):
            raise HTTPException(status_code=401, detail="Invalid API key")

        retailer = request.retailer or default_retailer
        try:
            registry.resolve(retailer)
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        run_id = supervisor.submit(retailer, request.category_url)
        LOGGER.info("HTTP trigger started run %s", run_id, extra={"retailer": retailer})
        return {
            "status": "started",
            "run_id": run_id,
            "message": f"Scraping process started for {retailer}",
            "retailer": retailer,
            "categoryUrl": request.category_url or "default",
        }

    @app.get("/api/runs/{run_id}")
    def run_status(run_id: str) -> dict[str, object]:
        record = supervisor.status(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return record.as_dict()

    return app
