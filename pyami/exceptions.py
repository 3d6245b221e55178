# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Custom exceptions for the pyami AMI client.

All exceptions inherit from AMIError, making it easy to catch every
AMI-related error with a single except clause:

    try:
        client.get_sip_peers()
    except AMIError as e:
        print(f"AMI error: {e}")

For more granular error handling, catch specific exception types:

    try:
        client = connect("pbx.local", username="admin", password="secret")
    except ConnectError as e:
        print(f"Could not reach {e.host}:{e.port} (errno {e.errno})")
    except AuthenticationError:
        print("Login rejected")

Malformed reply lines never raise: the packet parser skips them.
"""

from __future__ import annotations


class AMIError(Exception):
    """
    Base exception for all pyami errors.

    All pyami exceptions inherit from this class, allowing you to catch
    all AMI-related errors with a single except clause.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        self.hint = hint
        if hint:
            message = f"{message}\n\n  Hint: {hint}"
        super().__init__(message)


class ConnectError(AMIError):
    """
    Raised when the manager socket cannot be opened.

    Common causes:
    - Asterisk is not running or the manager interface is disabled
    - Wrong host or port
    - Firewall blocking the connection

    The OS-level error number and description are kept on the exception.
    """

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
        *,
        errno: int | None = None,
        strerror: str | None = None,
        hint: str | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.errno = errno
        self.strerror = strerror
        if hint is None and host:
            hint = f"Check that the manager interface is enabled and listening on {host}:{port}"
        super().__init__(message, hint=hint)


class ConnectTimeoutError(ConnectError):
    """Raised when opening the manager socket times out."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
        *,
        errno: int | None = None,
        strerror: str | None = None,
    ) -> None:
        super().__init__(
            message,
            host,
            port,
            errno=errno,
            strerror=strerror,
            hint="Try increasing connect_timeout or check network connectivity",
        )


class AuthenticationError(AMIError):
    """
    Raised when the Login action is not accepted.

    Common causes:
    - Invalid username or secret
    - The manager user is not permitted from this address (permit/deny)
    - The server closed the connection or never answered

    The session is closed when this is raised.
    """

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(
            message,
            hint="Check the [user] section and secret in manager.conf.",
        )


class TransportError(AMIError):
    """
    Raised when an exchange cannot be carried out.

    This happens when:
    - The session has no open connection (closed, or login failed)
    - The command is missing, not a mapping, or cannot be encoded
    - Writing to the socket fails
    """


class ConnectionClosedError(TransportError):
    """
    Raised when the server closes the connection during an exchange.

    The session is closed and will not reconnect.
    """

    def __init__(self, message: str = "Connection closed by server") -> None:
        super().__init__(message, hint="Open a new session to continue.")
