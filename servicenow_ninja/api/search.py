"""Search endpoint: ranked documentation snippets plus a generated answer."""

import logging
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from servicenow_ninja.core.search import SearchResult, answer_query

logger = logging.getLogger(__name__)

router = APIRouter()


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., description="Free-text question")
    is_lucky: bool = Field(
        default=False, alias="isLucky", description="Return only the answer, no result list"
    )
    top_k: Optional[int] = Field(
        default=None, alias="topK", ge=1, le=50, description="Number of results to retrieve"
    )


class SearchResponse(BaseModel):
    answer: str
    results: List[SearchResult]
    queryPreview: str


@router.post("/api/search", response_model=SearchResponse)
async def search(request: SearchRequest):
    """Answer a query from the crawled ServiceNow documentation."""
    if not request.query.strip():
        return JSONResponse(status_code=400, content={"error": "Query must not be empty"})

    try:
        response = await answer_query(
            request.query, is_lucky=request.is_lucky, top_k=request.top_k
        )
    except Exception as e:
        logger.error(f"Search API error: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to process search query"})

    return SearchResponse(**response)
