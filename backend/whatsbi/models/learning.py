"""
Learning Model - a query the assistant generated and what happened to it.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class LearnedQuery(BaseModel):
    """One distinct query text executed against a dataset."""
    id: str
    dataset_id: str
    company_group_id: Optional[str] = None
    user_question: str = ""
    question_intent: str
    query_text: str
    query_hash: str
    success: bool
    times_reused: int = 1
    error_message: Optional[str] = None
    execution_time_ms: Optional[int] = None
    result_rows: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_used_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
