"""Mail submission sessions over SMTP (DATA or BURL relay).

Public API re-exported here for convenience::

    from mail_submission import SmtpSessionFactory, SubmissionConfig, SessionObserver
"""

from .aiosmtp_engine import AiosmtplibTransport
from .config import SubmissionConfig
from .errors import SessionAlreadyUsedError, SubmissionError, format_encryption_errors
from .framing import dot_stuff, to_crlf
from .interface import SessionFactory, SessionObserver, SubmissionSession
from .latch import CredentialSlot, OutcomeLatch
from .logging import setup_logging
from .models import (
    AuthMechanism,
    EncryptionProblem,
    LogDirection,
    Outcome,
    OutcomeKind,
    SessionState,
    SocketErrorKind,
    SubmissionRequest,
    TransferVariant,
)
from .session import SmtpSession, SmtpSessionFactory
from .transport import TransportEngine, TransportEventHandler

__all__ = [
    "AiosmtplibTransport",
    "AuthMechanism",
    "CredentialSlot",
    "EncryptionProblem",
    "LogDirection",
    "Outcome",
    "OutcomeKind",
    "OutcomeLatch",
    "SessionAlreadyUsedError",
    "SessionFactory",
    "SessionObserver",
    "SessionState",
    "SmtpSession",
    "SmtpSessionFactory",
    "SocketErrorKind",
    "SubmissionConfig",
    "SubmissionError",
    "SubmissionRequest",
    "SubmissionSession",
    "TransferVariant",
    "TransportEngine",
    "TransportEventHandler",
    "dot_stuff",
    "format_encryption_errors",
    "setup_logging",
    "to_crlf",
]
