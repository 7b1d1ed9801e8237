"""The transport engine contract consumed by the session controller.

The engine owns the byte-level SMTP conversation.  Every operation is
fire-and-forget: it queues work and returns immediately, and results
come back through the bound :class:`TransportEventHandler`.
"""

from __future__ import annotations

import abc
from collections.abc import Sequence

from .models import AuthMechanism, EncryptionProblem, SocketErrorKind


class TransportEventHandler(abc.ABC):
    """Callbacks the engine invokes on the session's event loop."""

    @abc.abstractmethod
    def on_connected(self) -> None: ...

    @abc.abstractmethod
    def on_completed(self, success: bool) -> None:
        """All queued work finished (``True``) or was rejected (``False``).

        May be reported more than once, even with contradicting values.
        """
        ...

    @abc.abstractmethod
    def on_socket_error(self, kind: SocketErrorKind, message: str) -> None: ...

    @abc.abstractmethod
    def on_encryption_errors(self, problems: Sequence[EncryptionProblem]) -> None: ...

    @abc.abstractmethod
    def on_raw_bytes_read(self, data: bytes) -> None: ...

    @abc.abstractmethod
    def on_raw_bytes_written(self, data: bytes) -> None: ...


class TransportEngine(abc.ABC):
    """Pipelined SMTP client driven by a session controller."""

    @abc.abstractmethod
    def bind(self, handler: TransportEventHandler) -> None:
        """Register the single handler that receives this engine's events."""
        ...

    @property
    @abc.abstractmethod
    def error_string(self) -> str:
        """Text of the last protocol-level error, or ``""``."""
        ...

    @abc.abstractmethod
    def connect(self, host: str, port: int, encrypted: bool) -> None: ...

    @abc.abstractmethod
    def upgrade_to_encryption(self) -> None: ...

    @abc.abstractmethod
    def authenticate(self, username: str, password: str, mechanism: AuthMechanism) -> None: ...

    @abc.abstractmethod
    def submit_data(self, sender: bytes, recipients: Sequence[bytes], data: bytes) -> None:
        """Send *data* with ``DATA``.  The payload must already be dot-stuffed."""
        ...

    @abc.abstractmethod
    def submit_by_reference(self, sender: bytes, recipients: Sequence[bytes], token: bytes) -> None:
        """Submit a message the server can fetch itself (``BURL``)."""
        ...

    @abc.abstractmethod
    def disconnect(self) -> None:
        """Close the connection once the queued operations have run."""
        ...

    @abc.abstractmethod
    def abort(self) -> None:
        """Drop every queued operation that has not started, then disconnect.

        An operation already in progress may still finish.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources.  The default does nothing."""
