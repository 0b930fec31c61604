"""Assistant module - turns a question into queries, rows and an answer."""

from .history import ConversationLog
from .prompts import EXECUTE_QUERY_TOOL, build_system_prompt
from .pipeline import AssistantReply, QueryAssistant, QueryExecution

__all__ = [
    'ConversationLog',
    'EXECUTE_QUERY_TOOL',
    'build_system_prompt',
    'AssistantReply',
    'QueryAssistant',
    'QueryExecution',
]
