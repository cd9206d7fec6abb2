"""Crawler trigger endpoints: API-key protected POST and cron-secret protected GET."""

import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from servicenow_ninja.api.auth import has_valid_bearer
from servicenow_ninja.core.config import settings
from servicenow_ninja.core.crawler_log import CrawlerLogger
from servicenow_ninja.pipelines.orchestrator import (
    VALID_STEPS,
    InvalidStepError,
    parse_step,
    run_crawler,
    run_crawler_step,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class CrawlerRunResponse(BaseModel):
    success: bool
    message: str


class CrawlerStatusResponse(BaseModel):
    status: str
    message: str
    availableSteps: List[str]


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _run_requested(
    step: Optional[str], crawler_log: CrawlerLogger, prefix: str = ""
) -> JSONResponse:
    """Validate ``step`` and run it (or the full crawl when it is empty)."""
    if step:
        try:
            crawl_step = parse_step(step)
        except InvalidStepError as e:
            return _error(400, str(e))

    try:
        if step:
            await crawler_log.info(f"{prefix}Starting crawler step: {crawl_step.value}")
            await run_crawler_step(crawl_step)
            message = f"{prefix}Crawler step '{crawl_step.value}' completed successfully"
        else:
            await crawler_log.info(f"{prefix}Starting full crawler process")
            await run_crawler()
            message = f"{prefix}Crawler process completed successfully"
    except Exception as e:
        await crawler_log.error("Error running crawler from API", None, e)
        return _error(500, f"Failed to run crawler: {e}")

    return JSONResponse(content=CrawlerRunResponse(success=True, message=message).model_dump())


@router.post("/api/crawler", response_model=CrawlerRunResponse)
async def trigger_crawler(request: Request):
    """Run the crawler, or one step of it, synchronously.

    Body: ``{"step": "sitemaps" | "content" | "embeddings" | "combined"}``
    (optional). Requires ``Authorization: Bearer <CRAWLER_API_KEY>``.
    """
    if not has_valid_bearer(request, settings.crawler_api_key):
        return _error(401, "Unauthorized. Invalid or missing API key.")

    raw_body = await request.body()
    body = {}
    if raw_body.strip():
        try:
            body = json.loads(raw_body)
        except ValueError:
            return _error(400, "Request body must be valid JSON")
        if not isinstance(body, dict):
            return _error(400, "Request body must be a JSON object")

    return await _run_requested(body.get("step"), CrawlerLogger("crawler-api"))


@router.get("/api/crawler", response_model=CrawlerStatusResponse)
async def crawler_status():
    """Report that the crawler accepts commands and list the valid steps."""
    return CrawlerStatusResponse(
        status="ready",
        message="Crawler is ready to accept commands. Use POST to trigger the crawler.",
        availableSteps=VALID_STEPS,
    )


@router.get("/api/cron", response_model=CrawlerRunResponse)
async def cron_trigger(request: Request, step: Optional[str] = None):
    """Entry point for an external scheduler.

    Requires ``Authorization: Bearer <CRON_SECRET>``; ``?step=`` selects one step.
    """
    if not has_valid_bearer(request, settings.cron_secret):
        return _error(401, "Unauthorized. Invalid or missing cron secret.")

    return await _run_requested(step, CrawlerLogger("cron-job"), prefix="Cron job: ")
