"""Submission configuration loaded from environment variables.

Uses pydantic-settings so every field can be overridden via ``SMTP_*``
env vars.  A config is immutable once built; the session factory hands
the same instance to every session it creates.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

from .models import AuthMechanism


class SubmissionConfig(BaseSettings):
    """Mail submission endpoint settings."""

    model_config = {"env_prefix": "SMTP_", "frozen": True}

    host: str = Field(description="Submission server hostname")
    port: int = Field(default=587, ge=0, le=65535, description="Submission server port")
    use_ssl: bool = Field(
        default=False,
        description="Connect over TLS from the first byte (implicit TLS, e.g. port 465)",
    )
    start_tls: bool = Field(
        default=True,
        description="Upgrade a plain connection with STARTTLS before authenticating",
    )
    auth_required: bool = Field(default=True, description="Authenticate before submitting")
    username: str = Field(default="", description="Login username (may be empty)")
    auth_mechanism: AuthMechanism = Field(
        default=AuthMechanism.ANY,
        description="SASL mechanism policy used when authenticating",
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Per-command network timeout for the transport engine",
    )
    validate_certs: bool = Field(
        default=True,
        description="Validate the server certificate during TLS negotiation",
    )
