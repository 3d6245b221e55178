# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
TLS configuration for AMI connections.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class TLSConfig:
    """
    TLS settings for the manager socket.

    Asterisk serves AMI over TLS when ``tlsenable=yes`` is set in
    manager.conf, conventionally on port 5039.

    Examples:
        # Verify the server against a private CA
        >>> tls = TLSConfig(enabled=True, ca_file="/etc/asterisk/keys/ca.crt")

        # Self-signed test box (skip certificate verification)
        >>> tls = TLSConfig(enabled=True, insecure_skip_verify=True)
    """

    enabled: bool = False
    """Enable TLS encryption."""

    cert_file: Optional[str] = None
    """Path to client certificate file (for mutual TLS)."""

    key_file: Optional[str] = None
    """Path to client private key file (for mutual TLS)."""

    ca_file: Optional[str] = None
    """Path to CA certificate file for server verification."""

    server_name: Optional[str] = None
    """Expected server name in certificate (for SNI and verification)."""

    insecure_skip_verify: bool = False
    """Skip certificate verification (INSECURE - use only for testing)."""
