"""Data models for mail submission sessions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class SessionState(str, Enum):
    """Lifecycle of a single submission session.

    Declaration order is the only allowed direction of travel.
    """

    IDLE = "idle"
    AWAITING_CREDENTIAL = "awaiting_credential"
    CONNECTING = "connecting"
    SENDING = "sending"
    TERMINATED = "terminated"

    @property
    def rank(self) -> int:
        return list(SessionState).index(self)


class TransferVariant(str, Enum):
    """How the message reaches the server."""

    DATA = "data"
    RELAY_URL = "relay_url"


class AuthMechanism(str, Enum):
    """SASL mechanism policy handed to the transport when authenticating."""

    ANY = "any"
    PLAIN = "plain"
    LOGIN = "login"
    CRAM_MD5 = "cram_md5"


class SocketErrorKind(str, Enum):
    """Coarse classification of transport-level socket failures."""

    CONNECTION_REFUSED = "connection_refused"
    HOST_NOT_FOUND = "host_not_found"
    REMOTE_CLOSED = "remote_closed"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class LogDirection(str, Enum):
    """Direction of raw protocol traffic passed through for diagnostics."""

    READ = "read"
    WRITTEN = "written"


class OutcomeKind(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Outcome(BaseModel):
    """Terminal result of a submission session."""

    model_config = {"frozen": True}

    kind: OutcomeKind = Field(description="Which terminal state was reached")
    message: str | None = Field(
        default=None,
        description="Human-readable reason (failed / cancelled only)",
    )

    @classmethod
    def sent(cls) -> Outcome:
        return cls(kind=OutcomeKind.SENT)

    @classmethod
    def failed(cls, message: str) -> Outcome:
        return cls(kind=OutcomeKind.FAILED, message=message)

    @classmethod
    def cancelled(cls, message: str) -> Outcome:
        return cls(kind=OutcomeKind.CANCELLED, message=message)


@dataclass
class SubmissionRequest:
    """Envelope and payload of the one message a session submits.

    For :attr:`TransferVariant.DATA` the payload is the full message; for
    :attr:`TransferVariant.RELAY_URL` it is the opaque reference token.
    """

    sender: bytes
    recipients: list[bytes]
    payload: bytes
    variant: TransferVariant
    dot_stuffed: bool = False

    @property
    def progress_total(self) -> int:
        if self.variant is TransferVariant.DATA:
            return len(self.payload)
        return 1


@dataclass(frozen=True)
class EncryptionProblem:
    """A single certificate / TLS validation problem."""

    description: str
    code: int | None = None
