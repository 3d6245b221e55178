# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Tests for the AMI wire protocol implementation."""

import socket

import pytest

from pyami.protocol import (
    ACTION_ID_KEY,
    ActionIdGenerator,
    LineReader,
    ReadTimeout,
    encode_command,
    has_action_id,
    parse_packet,
)
from pyami.types import Record


class TestParsePacket:
    """Tests for parse_packet."""

    def test_parse_simple_packet(self) -> None:
        """Test keys are lowercased and values trimmed."""
        record = parse_packet("Response: Success\r\nMessage:  Authentication accepted \r\n")
        assert record == {"response": "Success", "message": "Authentication accepted"}
        assert isinstance(record, Record)

    def test_parse_empty_input(self) -> None:
        """Test empty input yields an empty record."""
        assert parse_packet("") == {}
        assert len(parse_packet("\r\n\r\n")) == 0

    def test_parse_malformed_input(self) -> None:
        """Test a block with no key/value lines yields an empty record."""
        assert parse_packet("garbage\r\n--END COMMAND--\r\n:\r\n") == {}

    def test_last_write_wins(self) -> None:
        """Test a repeated key keeps its last value, whatever its casing."""
        record = parse_packet("Key1: A\r\nKEY1: B\r\n")
        assert record == {"key1": "B"}

    def test_banner_is_skipped(self) -> None:
        """Test the connect banner is dropped as a non key/value line."""
        record = parse_packet(
            "Asterisk Call Manager/1.1\r\nResponse: Success\r\nMessage: Authentication accepted\r\n"
        )
        assert record == {"response": "Success", "message": "Authentication accepted"}

    def test_key_with_invalid_characters_is_skipped(self) -> None:
        """Test keys may only hold letters, digits and whitespace."""
        record = parse_packet("Chan-Type: SIP\r\nX_Var: 1\r\nStatus: OK\r\n")
        assert record == {"status": "OK"}

    def test_key_with_spaces(self) -> None:
        """Test keys with inner whitespace are kept and trimmed."""
        record = parse_packet("  Caller ID : 100\r\n")
        assert record == {"caller id": "100"}

    def test_value_keeps_colons(self) -> None:
        """Test only the first colon splits key from value."""
        record = parse_packet("Address-IP: x\r\nUptime: 01:02:03\r\nChannel: SIP/1000-0000001\r\n")
        assert record["uptime"] == "01:02:03"
        assert record["channel"] == "SIP/1000-0000001"

    def test_empty_value(self) -> None:
        """Test a key with no value maps to an empty string."""
        assert parse_packet("Callerid:\r\n") == {"callerid": ""}

    def test_bare_newlines(self) -> None:
        """Test LF-only line endings are tolerated."""
        assert parse_packet("Peer: 1000\nStatus: OK\n") == {"peer": "1000", "status": "OK"}

    def test_order_is_preserved(self) -> None:
        """Test keys come back in the order they were received."""
        record = parse_packet("Zeta: 1\r\nAlpha: 2\r\nMid: 3\r\n")
        assert list(record) == ["zeta", "alpha", "mid"]


class TestRecord:
    """Tests for the Record mapping."""

    def test_record_is_read_only(self) -> None:
        """Test records cannot be modified."""
        record = parse_packet("Peer: 1000\r\n")
        with pytest.raises(TypeError):
            record["peer"] = "2000"  # type: ignore[index]

    def test_without(self) -> None:
        """Test without() returns a copy missing the given keys."""
        record = Record({"event": "PeerEntry", "actionid": "x-1", "objectname": "1000"})
        trimmed = record.without("event", "actionid")
        assert trimmed == {"objectname": "1000"}
        assert "event" in record

    def test_to_dict(self) -> None:
        """Test to_dict returns an independent dict."""
        record = Record({"peer": "1000"})
        data = record.to_dict()
        data["peer"] = "2000"
        assert record["peer"] == "1000"


class TestEncodeCommand:
    """Tests for encode_command."""

    def test_encode_with_action_id(self) -> None:
        """Test parameters keep their order and the ActionID goes last."""
        data = encode_command({"Action": "SIPShowPeer", "Peer": "1000"}, "abc-1")
        assert data == b"Action: SIPShowPeer\r\nPeer: 1000\r\nActionID: abc-1\r\n\r\n"

    def test_encode_without_action_id(self) -> None:
        """Test no ActionID line is added when none is given."""
        data = encode_command({"Action": "Ping", "ActionID": "mine"})
        assert data == b"Action: Ping\r\nActionID: mine\r\n\r\n"

    def test_encode_preserves_key_casing(self) -> None:
        """Test keys are sent as the caller wrote them."""
        data = encode_command({"action": "DBGet", "FAMILY": "cidname"})
        assert data.startswith(b"action: DBGet\r\nFAMILY: cidname\r\n")

    def test_encode_converts_values(self) -> None:
        """Test non-string values are stringified and None is empty."""
        data = encode_command({"Action": "DBPut", "Val": 42, "Key": None})
        assert data == b"Action: DBPut\r\nVal: 42\r\nKey: \r\n\r\n"

    @pytest.mark.parametrize("command", [None, "Action: Ping", 42, ["Action", "Ping"]])
    def test_encode_rejects_non_mapping(self, command: object) -> None:
        """Test anything but a mapping is refused."""
        with pytest.raises(TypeError, match="mapping"):
            encode_command(command)  # type: ignore[arg-type]

    def test_encode_rejects_line_breaks(self) -> None:
        """Test values cannot smuggle extra lines into the packet."""
        with pytest.raises(ValueError, match="Line break"):
            encode_command({"Action": "Command", "Command": "core show uptime\r\nAction: Logoff"})

    def test_has_action_id(self) -> None:
        """Test caller-supplied ActionIDs are found regardless of casing."""
        assert has_action_id({"Action": "Ping", ACTION_ID_KEY: "1"})
        assert has_action_id({"Action": "Ping", "actionid": "1"})
        assert not has_action_id({"Action": "Ping"})


class TestActionIdGenerator:
    """Tests for ActionIdGenerator."""

    def test_ids_increment(self) -> None:
        """Test ids share the prefix and count up."""
        gen = ActionIdGenerator(prefix="abc", start=100)
        assert gen.next() == "abc-100"
        assert gen.next() == "abc-101"

    def test_defaults(self) -> None:
        """Test the default prefix is random and the counter is time-based."""
        first = ActionIdGenerator()
        second = ActionIdGenerator()
        assert first.prefix != second.prefix
        prefix, counter = first.next().rsplit("-", 1)
        assert prefix == first.prefix
        assert int(counter) > 1_600_000_000

    def test_ids_are_unique(self) -> None:
        """Test a generator never repeats itself."""
        gen = ActionIdGenerator()
        ids = {gen.next() for _ in range(1000)}
        assert len(ids) == 1000


class TestLineReader:
    """Tests for LineReader over a socket pair."""

    @pytest.fixture
    def pair(self):
        left, right = socket.socketpair()
        left.settimeout(0.1)
        yield left, right
        left.close()
        right.close()

    def test_readline_splits_lines(self, pair) -> None:
        """Test lines are returned one at a time with their endings."""
        left, right = pair
        right.sendall(b"Response: Success\r\nMessage: ok\r\n\r\n")
        reader = LineReader(left)
        assert reader.readline() == "Response: Success\r\n"
        assert reader.readline() == "Message: ok\r\n"
        assert reader.readline() == "\r\n"

    def test_readline_across_chunks(self, pair) -> None:
        """Test a line split over several recv() calls is joined."""
        left, right = pair
        reader = LineReader(left, chunk_size=4)
        right.sendall(b"Event: PeerEntry\r\n")
        assert reader.readline() == "Event: PeerEntry\r\n"

    def test_readline_timeout_returns_partial(self, pair) -> None:
        """Test a timeout hands back the unfinished line."""
        left, right = pair
        reader = LineReader(left)
        right.sendall(b"Status: O")
        with pytest.raises(ReadTimeout) as exc_info:
            reader.readline()
        assert exc_info.value.partial == "Status: O"

        right.sendall(b"Peer: 1000\r\n")
        assert reader.readline() == "Peer: 1000\r\n"

    def test_readline_timeout_without_data(self, pair) -> None:
        """Test a timeout with nothing received has an empty partial."""
        left, _ = pair
        with pytest.raises(ReadTimeout) as exc_info:
            LineReader(left).readline()
        assert exc_info.value.partial == ""

    def test_readline_eof(self, pair) -> None:
        """Test a closed peer raises EOFError."""
        left, right = pair
        right.close()
        with pytest.raises(EOFError, match="Connection closed"):
            LineReader(left).readline()
