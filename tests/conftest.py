"""Shared test fixtures for the mail_submission test suite."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from mail_submission.config import SubmissionConfig
from mail_submission.interface import SessionObserver
from mail_submission.models import (
    AuthMechanism,
    EncryptionProblem,
    LogDirection,
)
from mail_submission.session import SmtpSession
from mail_submission.transport import TransportEngine, TransportEventHandler

TERMINAL_EVENTS = ("sent", "failed", "cancelled")


class FakeTransport(TransportEngine):
    """Records every operation; tests drive the events by hand.

    When ``complete_on_submit`` is set, a submission immediately reports
    ``on_completed`` with that value, like an engine on a very fast link.
    """

    def __init__(self) -> None:
        self.handler: TransportEventHandler | None = None
        self.calls: list[tuple] = []
        self.error = ""
        self.complete_on_submit: bool | None = None
        self.closed = False

    def bind(self, handler: TransportEventHandler) -> None:
        self.handler = handler

    @property
    def error_string(self) -> str:
        return self.error

    @property
    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def connect(self, host: str, port: int, encrypted: bool) -> None:
        self.calls.append(("connect", host, port, encrypted))

    def upgrade_to_encryption(self) -> None:
        self.calls.append(("upgrade_to_encryption",))

    def authenticate(self, username: str, password: str, mechanism: AuthMechanism) -> None:
        self.calls.append(("authenticate", username, password, mechanism))

    def submit_data(self, sender: bytes, recipients: Sequence[bytes], data: bytes) -> None:
        self.calls.append(("submit_data", sender, list(recipients), data))
        self._maybe_complete()

    def submit_by_reference(self, sender: bytes, recipients: Sequence[bytes], token: bytes) -> None:
        self.calls.append(("submit_by_reference", sender, list(recipients), token))
        self._maybe_complete()

    def disconnect(self) -> None:
        self.calls.append(("disconnect",))

    def abort(self) -> None:
        self.calls.append(("abort",))

    async def aclose(self) -> None:
        self.closed = True

    def _maybe_complete(self) -> None:
        if self.complete_on_submit is not None:
            assert self.handler is not None
            self.handler.on_completed(self.complete_on_submit)


class RecordingObserver(SessionObserver):
    """Keeps every outward session event in order."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    @property
    def names(self) -> list[str]:
        return [event[0] for event in self.events]

    @property
    def terminal(self) -> list[tuple]:
        return [event for event in self.events if event[0] in TERMINAL_EVENTS]

    def connecting(self) -> None:
        self.events.append(("connecting",))

    def sending(self) -> None:
        self.events.append(("sending",))

    def progress_max(self, total: int) -> None:
        self.events.append(("progress_max", total))

    def progress(self, current: int) -> None:
        self.events.append(("progress", current))

    def credential_requested(self, username: str, host: str) -> None:
        self.events.append(("credential_requested", username, host))

    def sent(self) -> None:
        self.events.append(("sent",))

    def failed(self, message: str) -> None:
        self.events.append(("failed", message))

    def cancelled(self, message: str) -> None:
        self.events.append(("cancelled", message))

    def logged(self, direction: LogDirection, label: str, text: str) -> None:
        self.events.append(("logged", direction, label, text))


@pytest.fixture
def submission_config() -> SubmissionConfig:
    return SubmissionConfig(
        host="smtp.test.com",
        port=587,
        use_ssl=False,
        start_tls=True,
        auth_required=True,
        username="testuser",
    )


@pytest.fixture
def no_auth_config() -> SubmissionConfig:
    return SubmissionConfig(
        host="smtp.test.com",
        port=25,
        use_ssl=False,
        start_tls=False,
        auth_required=False,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def session(
    submission_config: SubmissionConfig,
    observer: RecordingObserver,
    transport: FakeTransport,
) -> SmtpSession:
    return SmtpSession(submission_config, observer, transport)


@pytest.fixture
def no_auth_session(
    no_auth_config: SubmissionConfig,
    observer: RecordingObserver,
    transport: FakeTransport,
) -> SmtpSession:
    return SmtpSession(no_auth_config, observer, transport)


@pytest.fixture
def expired_certificate() -> EncryptionProblem:
    return EncryptionProblem(description="certificate has expired", code=10)
