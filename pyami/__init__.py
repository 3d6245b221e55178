# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pyami - Python client for the Asterisk Manager Interface (AMI).

A small blocking client with support for:
- Login handshake and ActionID generation
- Single replies and event lists (peers, queues, AstDB)
- Raw CLI commands
- AMI over TLS

Quick Start (Simplest):
    >>> from pyami import connect
    >>>
    >>> client = connect("pbx.local", username="admin", password="secret")
    >>> client.get_sip_peer("1000")["status"]
    'OK (3 ms)'

Context Manager (Recommended for applications):
    >>> from pyami import connect
    >>>
    >>> with connect("pbx.local", username="admin", password="secret") as client:
    ...     for name, queue in client.get_queues().items():
    ...         print(name, len(queue.members))
    # Connection auto-closes when exiting the block

Custom Exchanges:
    >>> session = client.session
    >>> result = session.exchange(
    ...     {"Action": "CoreShowChannels"},
    ...     terminator="Event: CoreShowChannelsComplete",
    ...     event_filter="CoreShowChannel",
    ... )
    >>> for channel in result:
    ...     print(channel["channel"])

Logging:
    pyami logs through the standard ``logging`` module under the ``pyami``
    logger and configures no handlers. Enable DEBUG to trace exchanges.
"""

from .client import AMIClient, connect
from .exceptions import (
    AMIError,
    AuthenticationError,
    ConnectError,
    ConnectionClosedError,
    ConnectTimeoutError,
    TransportError,
)
from .models import ClientConfig
from .protocol import (
    BLANK_LINE,
    DEFAULT_PORT,
    ActionIdGenerator,
    encode_command,
    parse_packet,
)
from .session import AMISession
from .tls import TLSConfig
from .types import Outcome, Queue, RawText, Record, RecordResult, RecordSequence

__version__ = "1.1.0"
__license__ = "Apache-2.0"

__all__ = [
    # Client
    "AMIClient",
    "AMISession",
    "connect",
    # Configuration
    "ClientConfig",
    "TLSConfig",
    # Protocol
    "BLANK_LINE",
    "DEFAULT_PORT",
    "ActionIdGenerator",
    "encode_command",
    "parse_packet",
    # Types
    "Record",
    "RecordResult",
    "RecordSequence",
    "RawText",
    "Outcome",
    "Queue",
    # Exceptions
    "AMIError",
    "ConnectError",
    "ConnectTimeoutError",
    "AuthenticationError",
    "TransportError",
    "ConnectionClosedError",
]
