"""
Job store implementations.

Encapsulates job persistence and the compare-and-set used for every
state change:
- InMemoryJobStore: backed by the shared MemoryStore
- SupabaseJobStore: backed by the ``jobs`` and ``job_events`` tables

Note: Stores do NOT perform authorization checks.
The orchestrator is responsible for verifying user ownership.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from supabase import Client

from shared.memory import MemoryStore
from shared.repository import BaseRepository
from shared.retry import store_retry

from .exceptions import JobNotFoundError
from .models import FailureReason, Job, JobKind, JobState
from .state_machine import assert_transition

logger = logging.getLogger(__name__)

JOBS_TABLE = "jobs"
CORRELATION_INDEX = "jobs_by_correlation_id"
EVENTS_TABLE = "job_events"

_TRANSITION_FIELDS = frozenset({
    "external_correlation_id",
    "result_ref",
    "failure_reason",
    "error_message",
    "submitted_at",
    "completed_at",
})


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - _TRANSITION_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be set by a transition: {sorted(unknown)}")


def _check_edges(job_id: str, expected: tuple[JobState, ...], new_state: JobState) -> None:
    for state in expected:
        assert_transition(job_id, state, new_state)


class InMemoryJobStore:
    """Job store backed by a MemoryStore."""

    def __init__(self, store: MemoryStore):
        self._store = store

    def create(self, job: Job) -> Job:
        with self._store.transaction():
            if not self._store.insert_if_absent(JOBS_TABLE, job.id, job):
                return self._store.get(JOBS_TABLE, job.id)
            if job.external_correlation_id:
                self._store.put(CORRELATION_INDEX, job.external_correlation_id, job.id)
        return job

    def get(self, job_id: str) -> Optional[Job]:
        return self._store.get(JOBS_TABLE, job_id)

    def get_by_correlation_id(self, correlation_id: str) -> Optional[Job]:
        job_id = self._store.get(CORRELATION_INDEX, correlation_id)
        if job_id is None:
            return None
        return self.get(job_id)

    def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        state: Optional[JobState] = None,
    ) -> tuple[list[Job], int]:
        jobs = self._store.select(
            JOBS_TABLE,
            lambda j: j.user_id == user_id and (state is None or j.state == state),
        )
        jobs.reverse()
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        offset = (page - 1) * page_size
        return jobs[offset : offset + page_size], len(jobs)

    def transition(
        self,
        job_id: str,
        expected: Iterable[JobState],
        new_state: JobState,
        **fields: Any,
    ) -> Optional[Job]:
        expected = tuple(expected)
        _check_edges(job_id, expected, new_state)
        _check_fields(fields)

        with self._store.transaction():
            job: Optional[Job] = self._store.get(JOBS_TABLE, job_id)
            if job is None:
                raise JobNotFoundError(job_id)
            if job.state not in expected:
                logger.debug(
                    f"Transition lost: job={job_id} state={job.state.value} "
                    f"wanted {new_state.value}"
                )
                return None

            updated = job.model_copy(update={
                **fields,
                "state": new_state,
                "updated_at": datetime.now(timezone.utc),
            })
            self._store.put(JOBS_TABLE, job_id, updated)
            if fields.get("external_correlation_id"):
                self._store.put(CORRELATION_INDEX, fields["external_correlation_id"], job_id)

        logger.info(f"Job {job_id}: {job.state.value} -> {new_state.value}")
        return updated

    def mark_refunded(self, job_id: str, refunded: bool = True) -> Optional[Job]:
        with self._store.transaction():
            job: Optional[Job] = self._store.get(JOBS_TABLE, job_id)
            if job is None or job.state != JobState.FAILED:
                return None
            updated = job.model_copy(update={
                "refunded": job.refunded or refunded,
                "refund_settled": True,
                "updated_at": datetime.now(timezone.utc),
            })
            self._store.put(JOBS_TABLE, job_id, updated)
        return updated

    def find_stale(self, states: Iterable[JobState], older_than: datetime) -> list[Job]:
        states = frozenset(states)
        return self._store.select(
            JOBS_TABLE,
            lambda j: j.state in states and j.updated_at < older_than,
        )

    def find_unrefunded_failures(self, limit: int = 100) -> list[Job]:
        jobs = self._store.select(
            JOBS_TABLE,
            lambda j: (
                j.state == JobState.FAILED
                and not j.refund_settled
                and j.failure_reason != FailureReason.INSUFFICIENT_CREDITS
            ),
        )
        return jobs[:limit]

    def has_event(self, event_key: str) -> bool:
        return self._store.get(EVENTS_TABLE, event_key) is not None

    def record_event(self, event_key: str) -> bool:
        with self._store.transaction():
            return self._store.insert_if_absent(
                EVENTS_TABLE, event_key, datetime.now(timezone.utc)
            )


class SupabaseJobStore(BaseRepository[Job]):
    """
    Job store persisted in Supabase.

    ``transition`` is a single ``UPDATE ... WHERE id = ? AND state IN (...)``
    so concurrent writers race on the row and exactly one wins. A retried
    transition that already landed reports a lost race; any side effect
    it owed (a refund) is picked up by refund reconciliation.
    """

    def __init__(self, db: Client):
        super().__init__(db)

    @store_retry
    def create(self, job: Job) -> Job:
        result = self._execute(
            self._db.table(JOBS_TABLE).upsert(
                self._to_row(job),
                on_conflict="id",
                ignore_duplicates=True,
            ),
            "jobs.create",
        )
        if result.data:
            return self._map_to_job(result.data[0])
        existing = self.get(job.id)
        if existing is None:
            raise JobNotFoundError(job.id)
        return existing

    @store_retry
    def get(self, job_id: str) -> Optional[Job]:
        result = self._execute(
            self._db.table(JOBS_TABLE).select("*").eq("id", job_id),
            "jobs.get",
        )
        if not result.data:
            return None
        return self._map_to_job(result.data[0])

    @store_retry
    def get_by_correlation_id(self, correlation_id: str) -> Optional[Job]:
        result = self._execute(
            self._db.table(JOBS_TABLE).select("*").eq("external_correlation_id", correlation_id),
            "jobs.get_by_correlation_id",
        )
        if not result.data:
            return None
        return self._map_to_job(result.data[0])

    @store_retry
    def list_for_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        state: Optional[JobState] = None,
    ) -> tuple[list[Job], int]:
        offset = (page - 1) * page_size

        query = self._db.table(JOBS_TABLE).select("*", count="exact").eq("user_id", user_id)
        if state:
            query = query.eq("state", state.value)

        result = self._execute(
            query.order("created_at", desc=True).range(offset, offset + page_size - 1),
            "jobs.list_for_user",
        )
        jobs = [self._map_to_job(row) for row in result.data]
        return jobs, result.count or 0

    @store_retry
    def transition(
        self,
        job_id: str,
        expected: Iterable[JobState],
        new_state: JobState,
        **fields: Any,
    ) -> Optional[Job]:
        expected = tuple(expected)
        _check_edges(job_id, expected, new_state)
        _check_fields(fields)

        update = {key: self._serialize(value) for key, value in fields.items()}
        update["state"] = new_state.value
        update["updated_at"] = datetime.now(timezone.utc).isoformat()

        result = self._execute(
            self._db.table(JOBS_TABLE)
            .update(update)
            .eq("id", job_id)
            .in_("state", [s.value for s in expected]),
            "jobs.transition",
        )
        if not result.data:
            if self.get(job_id) is None:
                raise JobNotFoundError(job_id)
            logger.debug(f"Transition lost: job={job_id} wanted {new_state.value}")
            return None

        logger.info(f"Job {job_id} -> {new_state.value}")
        return self._map_to_job(result.data[0])

    @store_retry
    def mark_refunded(self, job_id: str, refunded: bool = True) -> Optional[Job]:
        values: dict[str, Any] = {
            "refund_settled": True,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if refunded:
            values["refunded"] = True
        result = self._execute(
            self._db.table(JOBS_TABLE)
            .update(values)
            .eq("id", job_id)
            .eq("state", JobState.FAILED.value),
            "jobs.mark_refunded",
        )
        if not result.data:
            return None
        return self._map_to_job(result.data[0])

    @store_retry
    def find_stale(self, states: Iterable[JobState], older_than: datetime) -> list[Job]:
        result = self._execute(
            self._db.table(JOBS_TABLE)
            .select("*")
            .in_("state", [s.value for s in states])
            .lt("updated_at", older_than.isoformat())
            .order("updated_at")
            .limit(500),
            "jobs.find_stale",
        )
        return [self._map_to_job(row) for row in result.data]

    @store_retry
    def find_unrefunded_failures(self, limit: int = 100) -> list[Job]:
        result = self._execute(
            self._db.table(JOBS_TABLE)
            .select("*")
            .eq("state", JobState.FAILED.value)
            .eq("refund_settled", False)
            .neq("failure_reason", FailureReason.INSUFFICIENT_CREDITS.value)
            .limit(limit),
            "jobs.find_unrefunded_failures",
        )
        return [self._map_to_job(row) for row in result.data]

    @store_retry
    def has_event(self, event_key: str) -> bool:
        result = self._execute(
            self._db.table(EVENTS_TABLE).select("event_key").eq("event_key", event_key),
            "job_events.get",
        )
        return bool(result.data)

    @store_retry
    def record_event(self, event_key: str) -> bool:
        result = self._execute(
            self._db.table(EVENTS_TABLE).upsert(
                {"event_key": event_key},
                on_conflict="event_key",
                ignore_duplicates=True,
            ),
            "job_events.record",
        )
        return bool(result.data)

    # -------------------------------------------------------------------------
    # Mapping helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _serialize(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, (JobState, FailureReason, JobKind)):
            return value.value
        return value

    def _to_row(self, job: Job) -> dict[str, Any]:
        return job.model_dump(mode="json")

    def _map_to_job(self, row: dict[str, Any]) -> Job:
        """Map database row to Job model."""
        return Job(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            kind=JobKind(row["kind"]),
            payload=row.get("payload") or {},
            state=JobState(row["state"]),
            cost_in_credits=int(row["cost_in_credits"]),
            external_correlation_id=row.get("external_correlation_id"),
            result_ref=row.get("result_ref"),
            failure_reason=(
                FailureReason(row["failure_reason"]) if row.get("failure_reason") else None
            ),
            error_message=row.get("error_message"),
            refunded=bool(row.get("refunded", False)),
            refund_settled=bool(row.get("refund_settled", False)),
            retry_of=row.get("retry_of"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            submitted_at=row.get("submitted_at"),
            completed_at=row.get("completed_at"),
        )
