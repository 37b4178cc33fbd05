"""
Base repository class for database access.

Provides a common abstraction layer for the Supabase-backed stores,
encapsulating client access and translating connectivity failures into
retryable errors.
"""

from typing import TypeVar, Generic

import httpx
from supabase import Client

from .exceptions import TransientStoreError


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for all Supabase repositories.

    Provides common functionality for database operations:
    - Supabase client access via self._db
    - Generic type parameter for model type hints
    - ``_execute`` which maps transport errors to TransientStoreError

    Subclasses should implement domain-specific data access methods
    and handle dict-to-Pydantic model mapping internally.

    Example:
        class JobRepository(BaseRepository[Job]):
            def get(self, job_id: str) -> Optional[Job]:
                result = self._execute(
                    self._db.table("jobs").select("*").eq("id", job_id),
                    "jobs.get",
                )
                if not result.data:
                    return None
                return self._map_to_job(result.data[0])
    """

    def __init__(self, db: Client) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
        """
        self._db = db

    def _execute(self, query, operation: str):
        """Run a PostgREST query, flagging network failures as transient."""
        try:
            return query.execute()
        except httpx.TransportError as e:
            raise TransientStoreError(str(e), operation=operation) from e
