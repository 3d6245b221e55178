# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
AMI session engine.

An AMISession owns one manager socket. It connects and logs in when it is
created, then runs exchanges: write one command, read the reply stream until
it ends, and hand back one of three shapes.

    # Single reply, read up to the first blank line
    result = session.exchange({"Action": "SIPShowPeer", "Peer": "1000"})
    print(result.record["status"])

    # Event list, one record per packet until the sentinel line
    peers = session.exchange(
        {"Action": "Sippeers"},
        terminator="Event: PeerlistComplete",
        event_filter="PeerEntry",
    )

    # Raw text
    text = session.exchange(
        {"Action": "Command", "Command": "core show uptime"},
        terminator="--END COMMAND--",
        raw=True,
    )

Only one exchange may be in flight per session; replies are not matched to
commands by ActionID. A read that times out ends the exchange with whatever
has arrived so far.
"""

from __future__ import annotations

import errno
import logging
import os
import re
import socket
import ssl
from collections.abc import Mapping
from typing import Any

from .exceptions import (
    AuthenticationError,
    ConnectError,
    ConnectionClosedError,
    ConnectTimeoutError,
    TransportError,
)
from .models import ClientConfig
from .protocol import (
    BLANK_LINE,
    ActionIdGenerator,
    LineReader,
    ReadTimeout,
    encode_command,
    has_action_id,
    parse_packet,
)
from .tls import TLSConfig
from .types import Outcome, RawText, Record, RecordResult, RecordSequence

logger = logging.getLogger(__name__)

_AUTH_ACCEPTED = re.compile(r"authentication accepted", re.IGNORECASE)

# Transport bookkeeping stripped from single-record replies
_RESPONSE_KEY = "response"
_ACTION_ID_KEY = "actionid"


def _normalize_terminator(terminator: str | None) -> str:
    if not terminator:
        return BLANK_LINE
    return terminator.rstrip("\r\n")


class AMISession:
    """
    One authenticated connection to the Asterisk Manager Interface.

    The session connects and logs in from its constructor; a failure in
    either step raises and leaves nothing open. It is not thread-safe.

    Example:
        >>> with AMISession("pbx.local", 5038, "admin", "secret") as session:
        ...     result = session.exchange({"Action": "Ping"})
        ...     print(result.record["ping"])
        Pong
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
        Connect to the manager interface and log in.

        Args:
            host: Server host name or address.
            port: Manager port (default 5038).
            username: Manager user name.
            password: Manager user secret.
            config: Optional ClientConfig object. It is copied, not modified.
            tls: Optional TLSConfig for AMI over TLS.
            **kwargs: Override config options (timeout, connect_timeout, etc.)

        Raises:
            ConnectError: If the socket cannot be opened.
            AuthenticationError: If the login is not accepted.
        """
        overrides: dict[str, Any] = {
            key: value
            for key, value in (
                ("host", host),
                ("port", port),
                ("username", username),
                ("password", password),
            )
            if value is not None
        }
        overrides.update(kwargs)

        if config is None:
            config = ClientConfig(**overrides)
        else:
            config = config.model_copy()
            for key, value in overrides.items():
                if key in ClientConfig.model_fields:
                    setattr(config, key, value)

        # Apply TLS config if provided
        if tls:
            config.tls_enabled = tls.enabled
            config.tls_cert_file = tls.cert_file
            config.tls_key_file = tls.key_file
            config.tls_ca_file = tls.ca_file
            config.tls_server_name = tls.server_name
            config.tls_insecure_skip_verify = tls.insecure_skip_verify

        self._config = config
        self._sock: socket.socket | None = None
        self._reader: LineReader | None = None
        self._ssl_context: ssl.SSLContext | None = None
        self._authenticated = False
        self._action_ids = ActionIdGenerator()
        self._last_result: Outcome | None = None

        if config.tls_enabled:
            self._setup_tls()

        self.connect()
        self.authenticate(config.username or "", config.secret())

    # =========================================================================
    # Connection
    # =========================================================================

    @property
    def host(self) -> str:
        return self._config.host

    @property
    def port(self) -> int:
        return self._config.port

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def is_connected(self) -> bool:
        """Check if the manager socket is open."""
        return self._sock is not None

    @property
    def is_authenticated(self) -> bool:
        """Check if the login was accepted on the open socket."""
        return self._authenticated and self._sock is not None

    @property
    def last_result(self) -> Outcome | None:
        """Outcome of the most recent exchange, for diagnostics."""
        return self._last_result

    def _setup_tls(self) -> None:
        """Configure TLS/SSL context."""
        self._ssl_context = ssl.create_default_context()

        if self._config.tls_insecure_skip_verify:
            self._ssl_context.check_hostname = False
            self._ssl_context.verify_mode = ssl.CERT_NONE
        elif self._config.tls_ca_file:
            self._ssl_context.load_verify_locations(self._config.tls_ca_file)

        # Client certificate for mutual TLS
        if self._config.tls_cert_file and self._config.tls_key_file:
            self._ssl_context.load_cert_chain(
                self._config.tls_cert_file, self._config.tls_key_file
            )

    def connect(self) -> None:
        """
        Open the manager socket, trying every resolved address.

        Raises:
            ConnectError: If no address accepts the connection.
            ConnectTimeoutError: If the last attempt timed out.
        """
        host, port = self._config.host, self._config.port

        try:
            addrs = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise ConnectError(
                f"Failed to resolve {host}: {e}", host, port, errno=e.errno, strerror=e.strerror
            ) from e

        last_error: ConnectError | None = None
        for family, socktype, proto, _canonname, sockaddr in addrs:
            sock = None
            try:
                sock = socket.socket(family, socktype, proto)
                sock.settimeout(self._config.connect_timeout)
                sock.connect(sockaddr)

                if self._ssl_context:
                    server_hostname = self._config.tls_server_name or host
                    sock = self._ssl_context.wrap_socket(sock, server_hostname=server_hostname)

                sock.settimeout(self._config.timeout)
                self._sock = sock
                self._reader = LineReader(sock, self._config.line_buffer)
                logger.debug("Connected to AMI at %s:%s", host, port)
                return
            except socket.timeout:
                last_error = ConnectTimeoutError(
                    f"Connection to {host}:{port} timed out",
                    host,
                    port,
                    errno=errno.ETIMEDOUT,
                    strerror=os.strerror(errno.ETIMEDOUT),
                )
                if sock:
                    sock.close()
            except OSError as e:
                last_error = ConnectError(
                    f"Could not connect to AMI at {host}:{port}: ({e.errno}) {e.strerror or e}",
                    host,
                    port,
                    errno=e.errno,
                    strerror=e.strerror,
                )
                if sock:
                    sock.close()

        if last_error:
            logger.debug("%s", last_error)
            raise last_error
        raise ConnectError(f"No addresses found for {host}:{port}", host, port)

    def _disconnect(self) -> None:
        """Close the socket, if any."""
        sock, self._sock = self._sock, None
        self._reader = None
        self._authenticated = False
        if sock is not None:
            try:
                sock.close()
            except OSError as e:
                logger.debug("Error closing AMI socket: %s", e)

    def close(self) -> None:
        """Close the connection and forget the credentials."""
        self._disconnect()
        self._config.clear_credentials()

    def __enter__(self) -> AMISession:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def __del__(self) -> None:
        if getattr(self, "_config", None) is not None:
            self.close()

    # =========================================================================
    # Authentication
    # =========================================================================

    def authenticate(self, username: str, password: str) -> None:
        """
        Log in with the Login action.

        Args:
            username: Manager user name.
            password: Manager user secret.

        Raises:
            AuthenticationError: If the reply does not say "Authentication
                accepted". The connection is closed in that case and every
                later exchange raises TransportError.
        """
        command = {
            "Action": "Login",
            "Username": username,
            "Secret": password,
            "Events": "On" if self._config.events else "Off",
        }

        try:
            result = self.exchange(command)
        except TransportError as e:
            logger.warning("Could not log in to AMI as %s: %s", username, e)
            self._disconnect()
            raise AuthenticationError(f"Login as {username!r} failed: {e}") from e

        message = result.record.get("message", "") if isinstance(result, RecordResult) else ""
        if not _AUTH_ACCEPTED.search(message):
            logger.warning("Could not log in to AMI as %s - authentication failed", username)
            self._disconnect()
            raise AuthenticationError(
                f"Login as {username!r} rejected: {message or 'no message in reply'}"
            )

        self._authenticated = True
        logger.debug("Logged in to AMI as %s", username)

    # =========================================================================
    # Send / receive
    # =========================================================================

    def exchange(
        self,
        command: Mapping[str, Any] | None,
        *,
        terminator: str | None = BLANK_LINE,
        event_filter: str | None = None,
        raw: bool = False,
    ) -> Outcome:
        """
        Send a command and read its reply.

        Args:
            command: Parameters in sending order; must include ``Action``.
                An ActionID is added unless one is present.
            terminator: Line that ends the exchange, with or without its
                ``\\r\\n``. The default blank line reads a single packet.
                Any other value collects one packet per blank line until
                the terminator is seen.
            event_filter: Keep only packets whose ``Event`` equals this.
            raw: Return the reply text instead of parsed records.

        Returns:
            RawText if raw, RecordResult for the blank-line terminator,
            RecordSequence otherwise.

        Raises:
            TransportError: If the session is not connected, the command is
                invalid, or the socket fails.
            ConnectionClosedError: If the server closes the connection.
        """
        if self._sock is None or self._reader is None:
            raise TransportError(
                "No open connection, cannot send data to AMI",
                hint="The session was closed or the login failed. Open a new session.",
            )
        if command is None:
            raise TransportError("No command specified")
        if not isinstance(command, Mapping):
            raise TransportError(f"Command must be a mapping, got {type(command).__name__}")

        action = next((v for k, v in command.items() if str(k).lower() == "action"), None)
        if not action:
            raise TransportError("Command has no Action")

        action_id = None if has_action_id(command) else self._action_ids.next()
        try:
            payload = encode_command(command, action_id)
        except (TypeError, ValueError) as e:
            raise TransportError(f"Cannot encode {action}: {e}") from e

        terminator = _normalize_terminator(terminator)
        event_filter = event_filter or None

        logger.debug("Sending %s (ActionID %s)", action, action_id or "set by caller")
        try:
            self._sock.sendall(payload)
        except OSError as e:
            self._disconnect()
            raise TransportError(f"Failed to send {action}: {e}") from e

        outcome = self._receive(terminator, event_filter, raw)
        self._last_result = outcome
        return outcome

    def _readline(self) -> str:
        """Read a line, turning socket failures into session errors."""
        try:
            return self._reader.readline()
        except EOFError as e:
            logger.warning("AMI connection to %s:%s closed by server", self.host, self.port)
            self._disconnect()
            raise ConnectionClosedError() from e
        except OSError as e:
            self._disconnect()
            raise TransportError(f"Failed to read from AMI: {e}") from e

    def _receive(self, terminator: str, event_filter: str | None, raw: bool) -> Outcome:
        packets: list[str] = []
        records: list[Record] = []
        buffer: list[str] = []

        while True:
            try:
                line = self._readline()
            except ReadTimeout as e:
                logger.debug("Socket timed out, using the reply received so far")
                if e.partial:
                    buffer.append(e.partial)
                break

            content = line.rstrip("\r\n")
            if content == BLANK_LINE:
                if terminator == BLANK_LINE:
                    break
                if buffer or (raw and event_filter is None):
                    text = "".join(buffer)
                    record = parse_packet(text)
                    if event_filter is None or record.get("event") == event_filter:
                        # Raw text keeps the separator line as received
                        packets.append(text + line)
                        if buffer:
                            records.append(record)
                    else:
                        logger.debug("Discarding packet with event %r", record.get("event"))
                buffer = []
            elif content == terminator:
                logger.debug("Reached terminator %r", terminator)
                if self._config.drain_terminator_packet:
                    self._drain_packet()
                break
            else:
                buffer.append(line)

        if raw:
            return RawText("".join(packets + buffer))

        if terminator == BLANK_LINE:
            record = parse_packet("".join(buffer))
            return RecordResult(
                record.without(_RESPONSE_KEY, _ACTION_ID_KEY),
                response=record.get(_RESPONSE_KEY),
                action_id=record.get(_ACTION_ID_KEY),
            )

        if buffer:
            logger.debug("Discarding incomplete packet at end of reply")
        return RecordSequence(tuple(records))

    def _drain_packet(self) -> None:
        """Consume the rest of the packet holding the terminator line."""
        while True:
            try:
                line = self._readline()
            except ReadTimeout:
                return
            except ConnectionClosedError:
                return
            if line.rstrip("\r\n") == BLANK_LINE:
                return
