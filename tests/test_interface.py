"""Tests for mail_submission.interface."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from mail_submission.interface import SessionFactory, SessionObserver, SubmissionSession
from mail_submission.models import LogDirection


class DataOnlySession(SubmissionSession):
    def __init__(self) -> None:
        self.sent: list[bytes] = []

    def send_data(self, sender: bytes, recipients: Sequence[bytes], message: bytes) -> None:
        self.sent.append(message)

    def cancel(self) -> None:
        pass


class TestSubmissionSession:
    def test_cannot_instantiate_directly(self):
        with pytest.raises(TypeError, match="abstract method"):
            SubmissionSession()  # type: ignore[abstract]

    def test_relay_unsupported_by_default(self):
        session = DataOnlySession()
        assert session.supports_relay() is False

    def test_default_send_relay_raises(self):
        with pytest.raises(NotImplementedError, match="DataOnlySession does not support relay"):
            DataOnlySession().send_relay(b"a@x", [b"b@x"], b"imap://x")

    def test_default_supply_credential_is_ignored(self):
        session = DataOnlySession()
        session.supply_credential("pw")
        session.send_data(b"a@x", [b"b@x"], b"body")
        assert session.sent == [b"body"]


class TestSessionObserver:
    def test_all_hooks_are_noops(self):
        observer = SessionObserver()
        observer.connecting()
        observer.sending()
        observer.progress_max(10)
        observer.progress(0)
        observer.credential_requested("user", "host")
        observer.sent()
        observer.failed("boom")
        observer.cancelled("stop")
        observer.logged(LogDirection.READ, "SMTP", "220 ready")


class TestSessionFactory:
    def test_cannot_instantiate_directly(self):
        with pytest.raises(TypeError, match="abstract method"):
            SessionFactory()  # type: ignore[abstract]

    def test_concrete_factory(self):
        class Factory(SessionFactory):
            def create(self, observer: SessionObserver) -> SubmissionSession:
                return DataOnlySession()

        factory = Factory()
        assert factory.create(SessionObserver()) is not factory.create(SessionObserver())
