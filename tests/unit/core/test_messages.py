"""Unit tests for wire message shapes and the in-memory channel."""

from unittest.mock import MagicMock

import pytest

from widgetsync.core.channel import Channel, InMemoryChannel
from widgetsync.core.errors import MessageFormatError
from widgetsync.core.messages import (
    CustomMsg,
    DisplayMsg,
    ExecutionState,
    MessageCallbacks,
    MessageKind,
    StatusMsg,
    SyncMode,
    UpdateMsg,
    custom_message,
    parse_message,
    parse_status,
    sync_message,
)


class TestOutbound:
    """Test outbound message builders."""

    def test_sync_message(self):
        assert sync_message(SyncMode.PATCH, {"a": 1}, ("buf",)) == {
            "method": "sync",
            "mode": "patch",
            "data": {"a": 1},
            "buffer_keys": ["buf"],
        }

    def test_sync_message_accepts_mode_name(self):
        assert sync_message("full", {})["mode"] == "full"

    def test_custom_message(self):
        assert custom_message({"x": 1}) == {"method": "custom", "content": {"x": 1}}


class TestParseMessage:
    """Test inbound message parsing."""

    def test_update(self):
        message = parse_message({"method": "update", "state": {"a": 1}, "buffer_keys": ["b"]}, [b"x"])

        assert message == UpdateMsg(state={"a": 1}, buffer_keys=["b"], buffers=[b"x"])
        assert message.kind is MessageKind.UPDATE

    def test_update_defaults(self):
        message = parse_message({"method": "update"})

        assert message.state == {}
        assert message.buffer_keys == []

    def test_custom(self):
        message = parse_message({"method": "custom", "content": [1, 2]})

        assert isinstance(message, CustomMsg)
        assert message.content == [1, 2]

    def test_display(self):
        message = parse_message({"method": "display", "extra": 1})

        assert isinstance(message, DisplayMsg)
        assert message.payload["extra"] == 1

    def test_unknown_method(self):
        with pytest.raises(MessageFormatError) as exc_info:
            parse_message({"method": "explode"})

        assert exc_info.value.code == "unknown_method"

    @pytest.mark.parametrize(
        "data",
        [
            {"method": "update", "state": [1]},
            {"method": "update", "state": {}, "buffer_keys": "abc"},
            {"method": "update", "state": {}, "buffer_keys": [1]},
            "update",
        ],
    )
    def test_malformed(self, data):
        with pytest.raises(MessageFormatError):
            parse_message(data)


class TestParseStatus:
    """Test status parsing."""

    def test_state_key(self):
        assert parse_status({"state": "idle"}).is_idle is True

    def test_execution_state_key(self):
        assert parse_status({"execution_state": "busy"}) == StatusMsg(ExecutionState.BUSY)

    def test_invalid(self):
        assert parse_status({"state": "asleep"}) is None
        assert parse_status(None) is None

    def test_passthrough(self):
        status = StatusMsg(ExecutionState.STARTING)

        assert parse_status(status) is status


class TestInMemoryChannel:
    """Test the in-process channel."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryChannel(), Channel)

    def test_generated_ids_unique(self):
        assert InMemoryChannel().comm_id != InMemoryChannel().comm_id

    def test_send_records(self):
        channel = InMemoryChannel("c")
        callbacks = MessageCallbacks()

        channel.send({"method": "custom"}, callbacks, None, [b"x"])

        (message,) = channel.drain()
        assert message.callbacks is callbacks
        assert message.buffers == [b"x"]
        assert channel.sent == []

    def test_send_after_close_dropped(self):
        channel = InMemoryChannel("c")
        channel.close()

        channel.send({"method": "custom"})

        assert channel.sent == []

    def test_deliver_without_handler(self):
        assert InMemoryChannel().deliver({"method": "update"}) is None

    def test_deliver_calls_handler(self):
        channel = InMemoryChannel()
        handler = MagicMock(return_value="handled")
        channel.on_msg(handler)

        assert channel.deliver({"method": "custom"}, [b"x"]) == "handled"
        handler.assert_called_once_with({"method": "custom"}, [b"x"])

    def test_deliver_close(self):
        channel = InMemoryChannel()
        handler = MagicMock()
        channel.on_close(handler)

        channel.deliver_close()

        assert channel.closed is True
        handler.assert_called_once_with({})

    def test_report_status_after_drain(self):
        channel = InMemoryChannel()
        status = MagicMock()
        channel.send({"method": "sync"}, MessageCallbacks(status=status))
        channel.drain()

        channel.report_status("idle")

        status.assert_called_once_with(StatusMsg(ExecutionState.IDLE))
