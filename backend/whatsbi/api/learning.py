"""
Learning API endpoints - Inspect learned queries and register user feedback.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel

from ..learning import QueryLearningStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/learning", tags=["learning"])


class FeedbackRequest(BaseModel):
    """User verdict on an answer backed by a learned query."""
    feedback: Literal["positive", "negative"]
    comment: Optional[str] = None


def get_learning_store(request: Request) -> QueryLearningStore:
    store = getattr(request.app.state, "learning", None)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Learning store not configured"
        )
    return store


@router.get("/{dataset_id}/queries")
async def get_top_queries(
    dataset_id: str,
    limit: int = Query(10, ge=1, le=100),
    store: QueryLearningStore = Depends(get_learning_store),
):
    """
    Most reused successful queries for a dataset.

    Args:
        dataset_id: Dataset whose learned queries to list
        limit: Maximum number of queries returned

    Returns:
        The queries, most reused first
    """
    queries = await store.get_top_queries(dataset_id, limit=limit)
    return {
        "dataset_id": dataset_id,
        "queries": [q.model_dump(mode="json") for q in queries],
    }


@router.post("/{dataset_id}/queries/{query_id}/feedback")
async def register_feedback(
    dataset_id: str,
    query_id: str,
    body: FeedbackRequest,
    store: QueryLearningStore = Depends(get_learning_store),
):
    """Mark a learned query as working or not working."""
    if await store.get_query(dataset_id, query_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Query not found"
        )

    saved = await store.register_feedback(
        dataset_id, query_id, positive=body.feedback == "positive", comment=body.comment
    )
    if not saved:
        logger.error(
            "Failed to save feedback",
            extra={"extra_fields": {"dataset_id": dataset_id, "query_id": query_id}}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save feedback"
        )
    return {"success": True}
