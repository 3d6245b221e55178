# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
AMI Wire Protocol Implementation.

Packet Format:
    Action: SIPShowPeer\\r\\n
    Peer: 1000\\r\\n
    ActionID: 5f2b9c1e04a7-1767225600\\r\\n
    \\r\\n

Every packet, in either direction, is a run of ``Key: Value`` lines ended by
a blank line. Commands that produce a list reply with one packet per event
followed by a sentinel packet (for example ``Event: PeerlistComplete``).

Parsing is lenient: lines that are not ``Key: Value`` pairs, such as the
``Asterisk Call Manager/1.1`` banner sent on connect, are skipped.
"""

from __future__ import annotations

import re
import secrets
import socket
import time
from collections.abc import Mapping
from typing import Any

from .types import Record

# Protocol constants
LINE_TERMINATOR: str = "\r\n"
BLANK_LINE: str = ""
ENCODING: str = "utf-8"
DEFAULT_PORT: int = 5038
ACTION_ID_KEY: str = "ActionID"

_LINE_SPLIT = re.compile(r"\r?\n")
_KEY_VALUE = re.compile(r"^([A-Za-z0-9\s]+):(.*)$")


class ReadTimeout(Exception):
    """
    Raised by LineReader when no complete line arrived within the timeout.

    ``partial`` holds any bytes of an unfinished line that were read before
    the timeout, decoded as text.
    """

    def __init__(self, partial: str = "") -> None:
        super().__init__("Timed out waiting for a line")
        self.partial = partial


def parse_packet(text: str) -> Record:
    """
    Convert a block of reply text into a Record.

    Args:
        text: One packet of ``Key: Value`` lines.

    Returns:
        Record with lowercased keys and trimmed values. Lines that do not
        look like ``Key: Value`` (key made of letters, digits and spaces)
        are dropped. A repeated key keeps its last value.

    Example:
        >>> parse_packet("Response: Success\\r\\nMessage: Authentication accepted\\r\\n")
        Record({'response': 'Success', 'message': 'Authentication accepted'})
    """
    fields: dict[str, str] = {}
    for line in _LINE_SPLIT.split(text or ""):
        match = _KEY_VALUE.match(line)
        if match is None:
            continue
        fields[match.group(1).strip().lower()] = match.group(2).strip()
    return Record(fields)


def has_action_id(command: Mapping[str, Any]) -> bool:
    """Check whether the caller already put an ActionID in the command."""
    return any(str(name).lower() == ACTION_ID_KEY.lower() for name in command)


def encode_command(command: Mapping[str, Any], action_id: str | None = None) -> bytes:
    """
    Serialize a command to its wire form.

    Args:
        command: Parameter names mapped to values, in sending order.
        action_id: ActionID to append last. Pass None when the command
            already carries one.

    Returns:
        UTF-8 encoded packet, ended by a blank line.

    Raises:
        TypeError: If command is not a mapping.
        ValueError: If a name or value contains a line break.
    """
    if not isinstance(command, Mapping):
        raise TypeError(f"Command must be a mapping, got {type(command).__name__}")

    items = [(str(name), "" if value is None else str(value)) for name, value in command.items()]
    if action_id is not None:
        items.append((ACTION_ID_KEY, action_id))

    lines = []
    for name, value in items:
        if "\r" in name or "\n" in name or "\r" in value or "\n" in value:
            raise ValueError(f"Line break in command parameter {name!r}")
        lines.append(f"{name}: {value}{LINE_TERMINATOR}")
    lines.append(LINE_TERMINATOR)

    return "".join(lines).encode(ENCODING)


class ActionIdGenerator:
    """
    Per-session source of unique ActionIDs.

    Ids look like ``<prefix>-<counter>``. The prefix is random and fixed for
    the generator's lifetime; the counter starts at the current Unix time
    and goes up by one per id.
    """

    def __init__(self, prefix: str | None = None, start: int | None = None) -> None:
        self.prefix = prefix if prefix is not None else secrets.token_hex(6)
        self._counter = start if start is not None else int(time.time())

    def next(self) -> str:
        """Return a fresh ActionID."""
        action_id = f"{self.prefix}-{self._counter}"
        self._counter += 1
        return action_id


class LineReader:
    """
    Buffered line reader over a socket with a read timeout.

    Unlike ``socket.makefile()``, a timeout does not poison the reader: the
    unfinished line is handed back through ReadTimeout and reading can go on.
    """

    def __init__(self, sock: socket.socket, chunk_size: int = 4096) -> None:
        self._sock = sock
        self._chunk_size = chunk_size
        self._buffer = bytearray()

    def readline(self) -> str:
        """
        Read one line, including its line ending.

        Raises:
            ReadTimeout: If the socket timed out before a full line arrived.
            EOFError: If the server closed the connection.
        """
        while True:
            idx = self._buffer.find(b"\n")
            if idx >= 0:
                line = bytes(self._buffer[: idx + 1])
                del self._buffer[: idx + 1]
                return line.decode(ENCODING, errors="replace")

            try:
                chunk = self._sock.recv(self._chunk_size)
            except socket.timeout as e:
                partial = bytes(self._buffer).decode(ENCODING, errors="replace")
                self._buffer.clear()
                raise ReadTimeout(partial) from e

            if not chunk:
                raise EOFError("Connection closed")
            self._buffer.extend(chunk)
