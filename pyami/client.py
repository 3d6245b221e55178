# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
pyami Client.

High-level operations on top of an AMISession. Each method is one exchange
with a fixed Action, reshaped into something convenient: a record, a dict
keyed by name, a value, a flag or plain text. All keys in returned records
are lowercase.

Usage Patterns:

    # Pattern 1: Simple usage (recommended for scripts)
    from pyami import connect
    client = connect("pbx.local", username="admin", password="secret")
    print(client.get_sip_peer("1000"))

    # Pattern 2: Context manager (recommended for applications)
    from pyami import AMIClient
    with AMIClient("pbx.local", 5038, "admin", "secret") as client:
        for name, peer in client.get_sip_peers().items():
            print(name, peer.get("status"))
    # Connection auto-closes when exiting the block

Replies vary between Asterisk versions; records carry whatever fields the
server sends.
"""

from __future__ import annotations

import logging
import re
from typing import Any, TypeVar, cast

from .models import ClientConfig
from .session import AMISession
from .tls import TLSConfig
from .types import Outcome, Queue, RawText, Record, RecordResult, RecordSequence

logger = logging.getLogger(__name__)

_DB_UPDATED = re.compile(r"updated database successfully", re.IGNORECASE)

PEERLIST_COMPLETE = "Event: PeerlistComplete"
QUEUE_STATUS_COMPLETE = "Event: QueueStatusComplete"
DBGET_COMPLETE = "Event: DBGetComplete"
END_COMMAND = "--END COMMAND--"

T = TypeVar("T")


def _name_order(name: str) -> tuple[int, int, str]:
    """Sort key putting numeric names first, in numeric order."""
    if name.isascii() and name.isdigit():
        return (0, int(name), name)
    return (1, 0, name)


def _sorted_by_name(items: dict[str, T]) -> dict[str, T]:
    return {name: items[name] for name in sorted(items, key=_name_order)}


class AMIClient:
    """
    Asterisk Manager Interface client.

    Connects and logs in on creation. Every method blocks until the server
    has answered or the read timeout (1 second by default) has passed.

    Example:
        >>> client = AMIClient("pbx.local", 5038, "admin", "secret")
        >>> client.set_db("cidname", "5551234", "Alice")
        True
        >>> client.get_db("cidname", "5551234")
        'Alice'
        >>> client.close()
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        *,
        config: ClientConfig | None = None,
        tls: TLSConfig | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize the client.

        Args:
            host: Server host name or address.
            port: Manager port (default 5038).
            username: Manager user name.
            password: Manager user secret.
            config: Optional ClientConfig object.
            tls: Optional TLSConfig for AMI over TLS.
            **kwargs: Override config options (timeout, connect_timeout, etc.)

        Raises:
            ConnectError: If the socket cannot be opened.
            AuthenticationError: If the login is not accepted.
        """
        self._session = AMISession(
            host, port, username, password, config=config, tls=tls, **kwargs
        )

    @property
    def session(self) -> AMISession:
        """The underlying session, for custom exchanges."""
        return self._session

    @property
    def last_result(self) -> Outcome | None:
        """Outcome of the most recent exchange."""
        return self._session.last_result

    def close(self) -> None:
        """Close the client connection."""
        self._session.close()

    def __enter__(self) -> AMIClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    # The outcome type follows from the exchange arguments alone

    def _record(self, command: dict[str, Any]) -> RecordResult:
        return cast(RecordResult, self._session.exchange(command))

    def _records(self, command: dict[str, Any], **kwargs: Any) -> RecordSequence:
        return cast(RecordSequence, self._session.exchange(command, **kwargs))

    def _text(self, command: dict[str, Any], **kwargs: Any) -> RawText:
        return cast(RawText, self._session.exchange(command, raw=True, **kwargs))

    # =========================================================================
    # SIP peers
    # =========================================================================

    def get_sip_peer(self, peer: str) -> Record | None:
        """
        Get everything Asterisk knows about a SIP peer.

        Args:
            peer: Peer name without the ``SIP/`` prefix.

        Returns:
            Record of peer data, or None if the server answered with an
            error (typically "Peer 1000 not found.").

        Example:
            >>> peer = client.get_sip_peer("1000")
            >>> peer["status"]
            'OK (3 ms)'
        """
        if not peer:
            raise ValueError("No SIP peer specified")

        result = self._record({"Action": "SIPShowPeer", "Peer": peer})

        if (result.response or "").lower() == "error":
            logger.debug("SIPShowPeer %s: %s", peer, result.record.get("message"))
            return None
        return result.record

    def get_sip_peers(self) -> dict[str, Record]:
        """
        List all SIP peers.

        Returns:
            Dict of peer records keyed by object name. Numeric names come
            first in numeric order, then the rest sorted as text. The
            ``event`` and ``actionid`` fields are left out.
        """
        result = self._records(
            {"Action": "Sippeers"},
            terminator=PEERLIST_COMPLETE,
            event_filter="PeerEntry",
        )

        peers: dict[str, Record] = {}
        for entry in result:
            name = entry.get("objectname")
            if name is None:
                continue
            peers[name] = entry.without("event", "actionid")

        return _sorted_by_name(peers)

    # =========================================================================
    # Queues
    # =========================================================================

    def get_queues(self) -> dict[str, Queue]:
        """
        List all call queues with their members.

        Returns:
            Dict of Queue objects keyed by queue name, sorted like peers. Each
            Queue holds the QueueParams fields and its members keyed by
            member name, also sorted. Members of a queue that sent no
            QueueParams packet are not reported.
        """
        result = self._records(
            {"Action": "QueueStatus"},
            terminator=QUEUE_STATUS_COMPLETE,
        )

        params: dict[str, Record] = {}
        members: dict[str, dict[str, Record]] = {}

        for packet in result:
            event = packet.get("event")
            queue = packet.get("queue")
            if event is None or queue is None:
                continue

            if event == "QueueParams":
                # first one wins
                params.setdefault(queue, packet.without("event", "actionid", "queue"))
            elif event == "QueueMember":
                name = packet.get("name", "")
                members.setdefault(queue, {})[name] = packet.without("event", "actionid")

        return {
            name: Queue(
                name=name,
                params=params[name],
                members=_sorted_by_name(members.get(name, {})),
            )
            for name in sorted(params, key=_name_order)
        }

    # =========================================================================
    # AstDB
    # =========================================================================

    def get_db(self, family: str, key: str) -> str | None:
        """
        Get a value from the Asterisk database.

        Args:
            family: AstDB family.
            key: Key within the family.

        Returns:
            The stored value, or None if the key does not exist.
        """
        if not family:
            raise ValueError("No family specified")
        if not key:
            raise ValueError("No key specified")

        result = self._records(
            {"Action": "DBGet", "Family": family, "Key": key},
            terminator=DBGET_COMPLETE,
            event_filter="DBGetResponse",
        )

        if not result or "val" not in result[0]:
            logger.debug("DBGet %s/%s returned no value", family, key)
            return None
        return result[0]["val"]

    def set_db(self, family: str, key: str, value: Any) -> bool:
        """
        Store a value in the Asterisk database.

        An existing value is overwritten silently.

        Returns:
            True if Asterisk reported the update.
        """
        if not family:
            raise ValueError("No family specified")
        if not key:
            raise ValueError("No key specified")

        result = self._record(
            {"Action": "DBPut", "Family": family, "Key": key, "Val": value}
        )

        return bool(_DB_UPDATED.search(result.record.get("message", "")))

    # =========================================================================
    # CLI
    # =========================================================================

    def command(self, command: str) -> str:
        """
        Run a CLI command and return its output unparsed.

        Example:
            >>> print(client.command("core show uptime"))
            Response: Follows
            Privilege: Command
            ActionID: 5f2b9c1e04a7-1767225601
            System uptime: 2 hours, 5 minutes, 12 seconds
        """
        if not command:
            raise ValueError("No command specified")

        result = self._text(
            {"Action": "Command", "Command": command},
            terminator=END_COMMAND,
        )
        return result.text


def connect(
    host: str = "localhost",
    port: int | None = None,
    username: str | None = None,
    password: str | None = None,
    *,
    tls: TLSConfig | None = None,
    tls_enabled: bool = False,
    tls_ca_file: str | None = None,
    tls_insecure_skip_verify: bool = False,
    **kwargs: Any,
) -> AMIClient:
    """
    Create and connect an AMI client.

    Args:
        host: Server host name or address.
        port: Manager port (default 5038).
        username: Manager user name.
        password: Manager user secret.
        tls: TLSConfig object for AMI over TLS.
        tls_enabled: Enable TLS (alternative to tls parameter).
        tls_ca_file: Path to CA certificate file for TLS verification.
        tls_insecure_skip_verify: Skip TLS certificate verification.
        **kwargs: Additional configuration options.

    Returns:
        Connected and logged-in AMIClient.

    Raises:
        ConnectError: If connection fails.
        AuthenticationError: If authentication fails.

    Examples:
        >>> client = connect("pbx.local", username="admin", password="secret")

        # Longer reads for slow list commands
        >>> client = connect("pbx.local", username="admin", password="secret", timeout=3)

        # AMI over TLS
        >>> client = connect("pbx.local", 5039, "admin", "secret", tls_enabled=True)
    """
    if tls is None and (tls_enabled or tls_ca_file):
        tls = TLSConfig(
            enabled=True,
            ca_file=tls_ca_file,
            insecure_skip_verify=tls_insecure_skip_verify,
        )

    return AMIClient(host, port, username, password, tls=tls, **kwargs)
