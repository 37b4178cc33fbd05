"""
In-process storage with transactional semantics.

MemoryStore backs the in-memory implementations of the credit ledger, the
job store and the payment store. All of them share one instance, so a unit
of work that spans several of them (a payment settlement touching the
transaction, the ledger and the subscription log) commits or rolls back as
a whole, the same way a Postgres function does for the Supabase backend.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

_MISSING = object()


class MemoryStore:
    """
    Keyed tables guarded by a single re-entrant lock.

    Writes are only allowed inside ``transaction()``. Every write records
    the previous value in an undo log; if the block raises, the writes made
    inside it are reverted before the exception propagates. Nested
    transactions join the outer one and roll back to their own start point.

    Rows should be treated as immutable values: replace them with ``put``
    instead of mutating them in place, otherwise rollback cannot restore
    them.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[str, dict[str, Any]] = {}
        self._undo: Optional[list[tuple[str, str, Any]]] = None
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator["MemoryStore"]:
        """Open (or join) a unit of work."""
        with self._lock:
            if self._depth == 0:
                self._undo = []
            mark = len(self._undo)
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._rollback_to(mark)
                raise
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._undo = None

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def get(self, table: str, key: str) -> Any:
        with self._lock:
            return self._tables.get(table, {}).get(key)

    def put(self, table: str, key: str, value: Any) -> None:
        with self._lock:
            self._require_transaction()
            rows = self._tables.setdefault(table, {})
            self._undo.append((table, key, rows.get(key, _MISSING)))
            rows[key] = value

    def insert_if_absent(self, table: str, key: str, value: Any) -> bool:
        """Insert a row unless the key exists. Returns True when inserted."""
        with self._lock:
            self._require_transaction()
            if key in self._tables.get(table, {}):
                return False
            self.put(table, key, value)
            return True

    def select(
        self,
        table: str,
        where: Optional[Callable[[Any], bool]] = None,
    ) -> list[Any]:
        """Return a snapshot of rows, optionally filtered."""
        with self._lock:
            rows = list(self._tables.get(table, {}).values())
        if where is None:
            return rows
        return [row for row in rows if where(row)]

    def _require_transaction(self) -> None:
        if self._depth == 0:
            raise RuntimeError("MemoryStore writes must happen inside transaction()")

    def _rollback_to(self, mark: int) -> None:
        while len(self._undo) > mark:
            table, key, previous = self._undo.pop()
            rows = self._tables.setdefault(table, {})
            if previous is _MISSING:
                rows.pop(key, None)
            else:
                rows[key] = previous
