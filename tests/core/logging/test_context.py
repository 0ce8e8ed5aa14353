"""Tests for worker logging context variables."""

import asyncio

from core.logging.context import clear_log_context, get_log_context, set_log_context


class TestLogContext:
    def setup_method(self):
        clear_log_context()

    def test_defaults_empty(self):
        assert get_log_context() == {"stage": "", "worker_id": "", "domain": "", "identity": ""}

    def test_partial_update_keeps_other_fields(self):
        set_log_context(stage="broker", worker_id="w-1")
        set_log_context(identity="doc-1")

        context = get_log_context()
        assert context["stage"] == "broker"
        assert context["worker_id"] == "w-1"
        assert context["identity"] == "doc-1"

    async def test_isolated_between_tasks(self):
        set_log_context(stage="broker")

        async def worker():
            set_log_context(identity="doc-9")
            return get_log_context()

        inner = await asyncio.create_task(worker())

        assert inner["identity"] == "doc-9"
        assert inner["stage"] == "broker"
        assert get_log_context()["identity"] == ""
