"""Learning module - intent labelling, answer failure detection and query memory."""

from .intent import identify_question_intent
from .failure import FailurePhrases, is_failure_response, identify_failure_reason
from .store import QueryLearningStore, query_hash

__all__ = [
    'identify_question_intent',
    'FailurePhrases',
    'is_failure_response',
    'identify_failure_reason',
    'QueryLearningStore',
    'query_hash',
]
