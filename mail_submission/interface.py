"""Abstract submission session, its factory, and the observer it reports to."""

from __future__ import annotations

import abc
from collections.abc import Sequence

from .models import LogDirection


class SessionObserver:
    """Receives the outward events of a submission session.

    Every hook defaults to a no-op so callers override only what they
    display.  Exactly one of :meth:`sent`, :meth:`failed` or
    :meth:`cancelled` is called per session.
    """

    def connecting(self) -> None:
        pass

    def sending(self) -> None:
        pass

    def progress_max(self, total: int) -> None:
        pass

    def progress(self, current: int) -> None:
        pass

    def credential_requested(self, username: str, host: str) -> None:
        """The session needs a password; answer with ``supply_credential``."""

    def sent(self) -> None:
        pass

    def failed(self, message: str) -> None:
        pass

    def cancelled(self, message: str) -> None:
        pass

    def logged(self, direction: LogDirection, label: str, text: str) -> None:
        pass


class SubmissionSession(abc.ABC):
    """One attempt to hand a single outbound message to a submission agent.

    A session is single-use: ask the factory for a new one per message.
    """

    @abc.abstractmethod
    def send_data(self, sender: bytes, recipients: Sequence[bytes], message: bytes) -> None:
        """Submit the full message bytes."""
        ...

    @abc.abstractmethod
    def cancel(self) -> None:
        ...

    def supports_relay(self) -> bool:
        """Whether :meth:`send_relay` can submit a message by reference."""
        return False

    def send_relay(self, sender: bytes, recipients: Sequence[bytes], token: bytes) -> None:
        """Ask the server to fetch and forward a message it already holds.

        The default raises ``NotImplementedError``.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support relay submission")

    def supply_credential(self, password: str) -> None:
        """Answer a credential request.  Ignored by sessions that never ask."""


class SessionFactory(abc.ABC):
    """Builds a fresh :class:`SubmissionSession` for every outbound message."""

    @abc.abstractmethod
    def create(self, observer: SessionObserver) -> SubmissionSession:
        ...
