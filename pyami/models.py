# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""
Pydantic models for pyami.

Provides the validated client configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from .protocol import DEFAULT_PORT


class ClientConfig(BaseModel):
    """Configuration for an AMI session."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = "localhost"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    # Credentials of a [user] section in manager.conf
    username: str | None = None
    password: SecretStr | None = None

    # Timeouts in seconds. `timeout` bounds every single read.
    connect_timeout: float = Field(default=1.0, gt=0, le=300)
    timeout: float = Field(default=1.0, gt=0, le=300)
    line_buffer: int = Field(default=4096, ge=1, description="Bytes per recv() call")

    # Sent as "Events: On/Off" with the Login action
    events: bool = False

    # Read the rest of a list's closing packet after its sentinel line
    drain_terminator_packet: bool = True

    # TLS settings
    tls_enabled: bool = False
    tls_ca_file: str | None = None
    tls_cert_file: str | None = None
    tls_key_file: str | None = None
    tls_server_name: str | None = None
    tls_insecure_skip_verify: bool = False

    def secret(self) -> str:
        """Get the plain-text password, or an empty string."""
        return self.password.get_secret_value() if self.password else ""

    def clear_credentials(self) -> None:
        """Drop username and password from this config."""
        self.username = None
        self.password = None
