"""Tests for message transport logging context."""

from core.logging.message_context import (
    MessageLogContext,
    clear_message_context,
    get_message_context,
    set_message_context,
)


class TestMessageContext:
    def setup_method(self):
        clear_message_context()

    def test_defaults(self):
        assert get_message_context() == {
            "message_topic": "",
            "message_partition": -1,
            "message_offset": -1,
        }

    def test_set_and_get(self):
        set_message_context(topic="genesis", partition=0, offset=7, key="doc-1", consumer_group="g")
        context = get_message_context()

        assert context["message_topic"] == "genesis"
        assert context["message_offset"] == 7
        assert context["message_key"] == "doc-1"
        assert context["message_consumer_group"] == "g"

    def test_context_manager_restores_previous(self):
        set_message_context(topic="outer", partition=0, offset=1)

        with MessageLogContext(topic="inner", partition=3, offset=99):
            assert get_message_context()["message_topic"] == "inner"
            assert get_message_context()["message_partition"] == 3

        context = get_message_context()
        assert context["message_topic"] == "outer"
        assert context["message_offset"] == 1

    def test_context_manager_restores_on_exception(self):
        try:
            with MessageLogContext(topic="inner", offset=5):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert get_message_context()["message_topic"] == ""
