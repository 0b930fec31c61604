"""
Query Learning Store - remembers which queries worked for which intents.

One JSON document per dataset under ``learning/``. Rows are unique by the
md5 of the query text; the per-dataset lock makes the existence check and
the insert/increment a single atomic step.
"""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..models import LearnedQuery
from ..storage import JSONDocumentStore, StorageInterface

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 500


def query_hash(query_text: str) -> str:
    return hashlib.md5(query_text.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryLearningStore(JSONDocumentStore):
    """Persists query outcomes and serves warm-start candidates."""

    def __init__(self, storage: StorageInterface, clock: Callable[[], datetime] = _utcnow):
        super().__init__(storage, "learning")
        self.clock = clock

    async def _load(self, dataset_id: str) -> List[LearnedQuery]:
        document = await self.read_document(dataset_id)
        if not document:
            return []
        return [LearnedQuery(**row) for row in document.get("queries", [])]

    async def _save(self, dataset_id: str, queries: List[LearnedQuery]) -> bool:
        rows = [query.model_dump(mode="json") for query in queries]
        return await self.write_document(dataset_id, {"dataset_id": dataset_id, "queries": rows})

    async def record_outcome(
        self,
        dataset_id: str,
        group_id: Optional[str],
        question: str,
        intent: str,
        query_text: str,
        success: bool,
        error: Optional[str] = None,
        elapsed_ms: Optional[int] = None,
        row_count: Optional[int] = None,
    ) -> Optional[LearnedQuery]:
        """
        Record one execution of ``query_text`` against ``dataset_id``.

        A known query that succeeded again has its reuse counter bumped; an
        unknown query is inserted whatever the outcome; a known query that
        failed this time is left as it was.

        Returns:
            The inserted or updated row, or None when nothing changed
        """
        digest = query_hash(query_text)

        async with self.key_lock(dataset_id):
            queries = await self._load(dataset_id)
            existing = next((q for q in queries if q.query_hash == digest), None)
            now = self.clock()

            if existing is not None:
                if not success:
                    return None
                existing.times_reused += 1
                existing.last_used_at = now
                await self._save(dataset_id, queries)
                logger.debug(
                    "Learned query reused",
                    extra={"extra_fields": {"dataset_id": dataset_id, "times_reused": existing.times_reused}}
                )
                return existing

            learned = LearnedQuery(
                id=str(uuid.uuid4()),
                dataset_id=dataset_id,
                company_group_id=group_id,
                user_question=question[:MAX_TEXT_LENGTH],
                question_intent=intent,
                query_text=query_text,
                query_hash=digest,
                success=success,
                error_message=error[:MAX_TEXT_LENGTH] if error else None,
                execution_time_ms=elapsed_ms,
                result_rows=row_count,
                created_at=now,
                last_used_at=now,
            )
            queries.append(learned)
            await self._save(dataset_id, queries)

        logger.info(
            "Learned query recorded",
            extra={"extra_fields": {"dataset_id": dataset_id, "intent": intent, "success": success}}
        )
        return learned

    async def get_working_queries(self, dataset_id: str, intent: str, limit: int = 3) -> List[str]:
        """Successful query texts for (dataset, intent), most reused first."""
        queries = await self._load(dataset_id)
        working = [q for q in queries if q.success and q.question_intent == intent]
        working.sort(key=lambda q: q.times_reused, reverse=True)
        return [q.query_text for q in working[:limit]]

    async def get_top_queries(self, dataset_id: str, limit: int = 10) -> List[LearnedQuery]:
        queries = await self._load(dataset_id)
        successful = [q for q in queries if q.success]
        successful.sort(key=lambda q: q.times_reused, reverse=True)
        return successful[:limit]

    async def get_query(self, dataset_id: str, query_id: str) -> Optional[LearnedQuery]:
        queries = await self._load(dataset_id)
        return next((q for q in queries if q.id == query_id), None)

    async def register_feedback(
        self,
        dataset_id: str,
        query_id: str,
        positive: bool,
        comment: Optional[str] = None,
    ) -> bool:
        """
        Apply user feedback to a stored query.

        Positive feedback marks it successful and counts as a reuse; negative
        feedback marks it failed and keeps the comment as the error message.

        Returns:
            False if the query does not exist
        """
        async with self.key_lock(dataset_id):
            queries = await self._load(dataset_id)
            target = next((q for q in queries if q.id == query_id), None)
            if target is None:
                logger.warning(
                    "Feedback for unknown query",
                    extra={"extra_fields": {"dataset_id": dataset_id, "query_id": query_id}}
                )
                return False

            target.last_used_at = self.clock()
            if positive:
                target.success = True
                target.times_reused += 1
            else:
                target.success = False
                if comment:
                    target.error_message = comment[:MAX_TEXT_LENGTH]

            saved = await self._save(dataset_id, queries)

        logger.info(
            f"Feedback {'positive' if positive else 'negative'} registered",
            extra={"extra_fields": {"dataset_id": dataset_id, "query_id": query_id}}
        )
        return saved
