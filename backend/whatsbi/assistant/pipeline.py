"""
Query Assistant - answers one question against the session's dataset.

Flow: intent -> warm-start queries -> model call with the execute_query
tool -> run requested queries (bounded rounds) -> final answer -> failure
classification -> learning store update.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..analytics import QueryExecutionEngine, QueryExecutionResult
from ..core.logging_config import LoggerAdapter, mask_phone
from ..learning import (
    QueryLearningStore,
    identify_failure_reason,
    identify_question_intent,
    is_failure_response,
)
from ..llm import LLMMessage, LLMResponse, ModelCallParams, ModelInvoker, ToolCall
from ..models import AuthorizedNumber, Session
from ..storage import StorageInterface
from .history import ConversationLog
from .prompts import EXECUTE_QUERY_TOOL, EXECUTE_QUERY_TOOL_NAME, build_system_prompt

logger = logging.getLogger(__name__)

MAX_TOOL_ROWS = 20
MAX_REPLY_CHARS = 1000
EMPTY_ANSWER_MESSAGE = "Desculpe, não consegui processar sua solicitação. Por favor, tente novamente."


@dataclass
class QueryExecution:
    """A query the model asked for and how it went."""
    query: str
    result: QueryExecutionResult


@dataclass
class AssistantReply:
    text: str
    failed: bool = False
    failure_reason: Optional[str] = None
    intent: str = ""
    executions: List[QueryExecution] = field(default_factory=list)


def format_tool_result(result: QueryExecutionResult) -> str:
    if not result.success:
        return f"Erro: {result.error}"
    return json.dumps(result.rows[:MAX_TOOL_ROWS], ensure_ascii=False, indent=2, default=str)


def truncate_reply(text: str, limit: int = MAX_REPLY_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


class QueryAssistant:
    """
    Answers questions with the model, executing the queries it writes.

    Model calls go through ``ModelInvoker``; when its retries are exhausted
    the error propagates and the caller owns the apology.
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        engine: QueryExecutionEngine,
        learning: QueryLearningStore,
        conversation_log: ConversationLog,
        storage: StorageInterface,
        max_tool_rounds: int = 2,
        max_retries: int = 4,
        timeout: float = 45.0,
        history_limit: int = 10,
        max_tokens: int = 1000,
        model: Optional[str] = None,
    ):
        self.invoker = invoker
        self.engine = engine
        self.learning = learning
        self.conversation_log = conversation_log
        self.storage = storage
        self.max_tool_rounds = max_tool_rounds
        self.max_retries = max_retries
        self.timeout = timeout
        self.history_limit = history_limit
        self.max_tokens = max_tokens
        self.model = model

    async def load_model_context(self, context_id: Optional[str]) -> Optional[str]:
        if not context_id:
            return None
        content = await self.storage.load(f"contexts/{context_id}.md")
        return content.decode("utf-8", errors="replace") if content else None

    async def _call_model(self, system: str, messages: List[LLMMessage]) -> LLMResponse:
        params = ModelCallParams(
            system=system,
            messages=messages,
            tools=[EXECUTE_QUERY_TOOL],
            model=self.model,
            max_tokens=self.max_tokens,
        )
        return await self.invoker.invoke(params, max_retries=self.max_retries, timeout=self.timeout)

    async def _run_tool(self, session: Session, call: ToolCall,
                        executions: List[QueryExecution]) -> Dict[str, str]:
        if call.name != EXECUTE_QUERY_TOOL_NAME:
            return {"tool_use_id": call.id, "content": f"Erro: ferramenta desconhecida {call.name}"}

        query = (call.input or {}).get("query")
        if not query:
            return {"tool_use_id": call.id, "content": "Erro: parâmetro 'query' ausente"}

        result = await self.engine.execute(session.connection_id, session.dataset_id, query)
        executions.append(QueryExecution(query=query, result=result))
        return {"tool_use_id": call.id, "content": format_tool_result(result)}

    async def _record_learning(self, session: Session, authorized_number: Optional[AuthorizedNumber],
                               question: str, intent: str, executions: List[QueryExecution],
                               answer_failed: bool) -> None:
        group_id = authorized_number.company_group_id if authorized_number else None
        for execution in executions:
            result = execution.result
            try:
                await self.learning.record_outcome(
                    dataset_id=session.dataset_id,
                    group_id=group_id,
                    question=question,
                    intent=intent,
                    query_text=execution.query,
                    success=result.success and not answer_failed,
                    error=result.error,
                    elapsed_ms=result.execution_time_ms,
                    row_count=result.row_count,
                )
            except (OSError, ValueError) as e:
                logger.error(
                    f"Failed to record query outcome: {e}",
                    extra={"extra_fields": {"dataset_id": session.dataset_id}}
                )

    async def answer(
        self,
        session: Session,
        question: str,
        authorized_number: Optional[AuthorizedNumber] = None,
    ) -> AssistantReply:
        """
        Answer ``question`` against the dataset bound to ``session``.

        Raises:
            Exception: The model call's last error once retries are exhausted
        """
        log = LoggerAdapter(logger, {
            "phone": mask_phone(session.phone_number),
            "dataset_id": session.dataset_id,
        })

        intent = identify_question_intent(question)
        working_queries = await self.learning.get_working_queries(session.dataset_id, intent)
        model_context = await self.load_model_context(session.context_id)
        history = await self.conversation_log.get_history(session.phone_number, self.history_limit)

        system = build_system_prompt(
            model_context=model_context,
            working_queries=working_queries,
            user_name=authorized_number.first_name if authorized_number else None,
            dataset_name=session.dataset_name,
        )
        messages = history + [LLMMessage.text("user", question)]
        log.info(
            "Answering question",
            extra={"extra_fields": {"intent": intent, "warm_start": len(working_queries)}}
        )

        executions: List[QueryExecution] = []
        response = await self._call_model(system, messages)

        rounds = 0
        while response.wants_tool and rounds < self.max_tool_rounds:
            rounds += 1
            results = [await self._run_tool(session, call, executions) for call in response.tool_calls]
            messages.append(LLMMessage.assistant_turn(response))
            messages.append(LLMMessage.tool_results(results))
            response = await self._call_model(system, messages)

        text = (response.content or "").strip()
        if not text:
            text = EMPTY_ANSWER_MESSAGE

        had_execution_error = any(not e.result.success for e in executions)
        failed = is_failure_response(text)
        reason = identify_failure_reason(text, had_execution_error) if failed else None

        await self._record_learning(session, authorized_number, question, intent, executions, failed)

        log.info(
            "Question answered",
            extra={"extra_fields": {
                "intent": intent,
                "tool_rounds": rounds,
                "queries": len(executions),
                "failed": failed,
                "failure_reason": reason,
            }}
        )
        return AssistantReply(
            text=truncate_reply(text),
            failed=failed,
            failure_reason=reason,
            intent=intent,
            executions=executions,
        )
