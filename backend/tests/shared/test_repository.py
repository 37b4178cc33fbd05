"""Tests for shared/repository.py."""

from typing import Optional
from unittest.mock import MagicMock

import httpx
import pytest

from shared.exceptions import TransientStoreError
from shared.repository import BaseRepository


class TestBaseRepository:
    """Tests for BaseRepository base class."""

    def test_init_stores_db_client(self):
        mock_db = MagicMock()
        repo = BaseRepository(mock_db)
        assert repo._db is mock_db

    def test_subclass_can_query(self):
        mock_db = MagicMock()
        mock_db.table.return_value.select.return_value.execute.return_value.data = [
            {"id": "123"}
        ]

        class TestRepository(BaseRepository[dict]):
            def get_all(self) -> list[dict]:
                return self._execute(self._db.table("test").select("*"), "test.list").data

        assert TestRepository(mock_db).get_all() == [{"id": "123"}]
        mock_db.table.assert_called_once_with("test")

    def test_execute_translates_transport_errors(self):
        query = MagicMock()
        query.execute.side_effect = httpx.ReadTimeout("timed out")

        class TestRepository(BaseRepository[dict]):
            def get(self) -> Optional[dict]:
                return self._execute(query, "test.get")

        with pytest.raises(TransientStoreError) as exc_info:
            TestRepository(MagicMock()).get()
        assert exc_info.value.details["operation"] == "test.get"

    def test_execute_passes_other_errors_through(self):
        query = MagicMock()
        query.execute.side_effect = RuntimeError("constraint")

        with pytest.raises(RuntimeError):
            BaseRepository(MagicMock())._execute(query, "test.get")
