"""Tests for repositories.utils.log_slow_query."""

from unittest.mock import patch

import pytest
from structlog.testing import capture_logs

from repositories.utils import log_slow_query

pytestmark = pytest.mark.unit


class TestLogSlowQuery:
    async def test_fast_query_is_silent(self):
        @log_slow_query("fast_op")
        async def op(value: int) -> int:
            return value + 1

        with capture_logs() as logs:
            assert await op(1) == 2

        assert logs == []

    async def test_slow_query_logs_warning(self):
        @log_slow_query("slow_op")
        async def op() -> str:
            return "done"

        with patch("repositories.utils.time.perf_counter", side_effect=[0.0, 1.0]):
            with capture_logs() as logs:
                assert await op() == "done"

        assert logs == [
            {
                "event": "db.query.slow",
                "db_operation": "slow_op",
                "db_duration_ms": 1000.0,
                "log_level": "warning",
            }
        ]

    async def test_failure_is_logged_and_reraised(self):
        @log_slow_query("broken_op")
        async def op() -> None:
            raise RuntimeError("connection lost")

        with capture_logs() as logs:
            with pytest.raises(RuntimeError, match="connection lost"):
                await op()

        assert logs[0]["event"] == "db.query.failed"
        assert logs[0]["db_error_type"] == "RuntimeError"
        assert logs[0]["log_level"] == "error"

    def test_preserves_function_name(self):
        @log_slow_query("named_op")
        async def count_things() -> int:
            return 0

        assert count_things.__name__ == "count_things"
