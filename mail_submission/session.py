"""The SMTP session controller: drives one message through a submission server.

The controller never blocks.  Waiting for a password and waiting for the
transport are both suspension points realised with callbacks, and every
method runs on the same event loop as the transport's callbacks, so no
locking is needed.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import structlog

from .config import SubmissionConfig
from .errors import (
    CANCELLED_MESSAGE,
    UNKNOWN_MODE_MESSAGE,
    SessionAlreadyUsedError,
    completion_failure_message,
    encryption_failure_message,
)
from .framing import dot_stuff
from .interface import SessionFactory, SessionObserver, SubmissionSession
from .latch import CredentialSlot, OutcomeLatch
from .models import (
    EncryptionProblem,
    LogDirection,
    Outcome,
    OutcomeKind,
    SessionState,
    SocketErrorKind,
    SubmissionRequest,
    TransferVariant,
)
from .transport import TransportEngine, TransportEventHandler

logger = structlog.get_logger()

LOG_LABEL = "SMTP"


class SmtpSession(SubmissionSession, TransportEventHandler):
    """Single-use SMTP submission session.

    Accepts exactly one :meth:`send_data` or :meth:`send_relay` call.
    The first terminal event (sent, failed or cancelled) is reported to
    the observer; anything the transport reports afterwards is dropped.
    """

    def __init__(
        self,
        config: SubmissionConfig,
        observer: SessionObserver,
        transport: TransportEngine,
    ) -> None:
        self.config = config
        self._observer = observer
        self._transport = transport
        self._state = SessionState.IDLE
        self._request: SubmissionRequest | None = None
        self._credential = CredentialSlot()
        self._latch = OutcomeLatch()
        self._log = logger.bind(host=config.host, port=config.port)

        transport.bind(self)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def request(self) -> SubmissionRequest | None:
        return self._request

    @property
    def outcome(self) -> Outcome | None:
        return self._latch.outcome

    def _advance(self, state: SessionState) -> None:
        # States only move forward; late callbacks cannot rewind a session.
        if state.rank > self._state.rank:
            self._state = state

    # ------------------------------------------------------------------
    # Submission entry points
    # ------------------------------------------------------------------

    def supports_relay(self) -> bool:
        return True

    def send_data(self, sender: bytes, recipients: Sequence[bytes], message: bytes) -> None:
        self._begin(SubmissionRequest(sender, list(recipients), message, TransferVariant.DATA))

    def send_relay(self, sender: bytes, recipients: Sequence[bytes], token: bytes) -> None:
        self._begin(SubmissionRequest(sender, list(recipients), token, TransferVariant.RELAY_URL))

    def _begin(self, request: SubmissionRequest) -> None:
        if self._request is not None or self._state is not SessionState.IDLE:
            raise SessionAlreadyUsedError("A submission session accepts exactly one message")

        self._request = request
        self._log.info(
            "submission_started",
            variant=request.variant.value,
            recipients=len(request.recipients),
            size=len(request.payload),
        )
        self._observer.progress_max(request.progress_total)
        self._observer.progress(0)
        self._observer.connecting()

        if not self.config.auth_required or self._credential.has_value:
            self._proceed_after_credential()
            return

        self._advance(SessionState.AWAITING_CREDENTIAL)
        self._credential.wait(self._proceed_after_credential)
        self._log.info("credential_requested", username=self.config.username)
        self._observer.credential_requested(self.config.username, self.config.host)

    def supply_credential(self, password: str) -> None:
        # The slot resumes the session only while it is waiting; cancel abandons it.
        if not self._credential.awaited:
            self._log.debug("credential_stored")
        self._credential.resolve(password)

    # ------------------------------------------------------------------
    # Network conversation
    # ------------------------------------------------------------------

    def _proceed_after_credential(self) -> None:
        request = self._request
        assert request is not None, "No submission request"
        self._advance(SessionState.CONNECTING)

        config = self.config
        self._transport.connect(config.host, config.port, config.use_ssl)
        if config.start_tls:
            self._transport.upgrade_to_encryption()
        if config.auth_required:
            self._transport.authenticate(
                config.username,
                self._credential.value,
                config.auth_mechanism,
            )
        self._observer.sending()

        dispatch = self._dispatchers().get(request.variant)
        if dispatch is None:
            self._log.error("unknown_transfer_variant", variant=str(request.variant))
            self._finish(Outcome.failed(UNKNOWN_MODE_MESSAGE))
        else:
            dispatch(request)
            self._advance(SessionState.SENDING)

        self._transport.disconnect()

    def _dispatchers(self) -> dict[TransferVariant, Callable[[SubmissionRequest], None]]:
        return {
            TransferVariant.DATA: self._submit_data,
            TransferVariant.RELAY_URL: self._submit_relay,
        }

    def _submit_data(self, request: SubmissionRequest) -> None:
        if not request.dot_stuffed:
            request.payload = dot_stuff(request.payload)
            request.dot_stuffed = True
        self._transport.submit_data(request.sender, request.recipients, request.payload)

    def _submit_relay(self, request: SubmissionRequest) -> None:
        self._transport.submit_by_reference(request.sender, request.recipients, request.payload)

    def cancel(self) -> None:
        self._transport.abort()
        self._credential.abandon()
        self._finish(Outcome.cancelled(CANCELLED_MESSAGE))

    async def aclose(self) -> None:
        """Release the transport once the caller is done with the session."""
        await self._transport.aclose()

    # ------------------------------------------------------------------
    # Outcome reporting
    # ------------------------------------------------------------------

    def _finish(self, outcome: Outcome) -> None:
        if not self._latch.settle(outcome):
            return
        self._advance(SessionState.TERMINATED)

        if outcome.kind is OutcomeKind.SENT:
            self._log.info("submission_sent")
            self._observer.sent()
        elif outcome.kind is OutcomeKind.CANCELLED:
            self._log.info("submission_cancelled")
            self._observer.cancelled(outcome.message or CANCELLED_MESSAGE)
        else:
            self._log.warning("submission_failed", error=outcome.message)
            self._observer.failed(outcome.message or "")

    # ------------------------------------------------------------------
    # TransportEventHandler
    # ------------------------------------------------------------------

    def on_connected(self) -> None:
        if self._latch.is_set:
            return
        self._log.debug("transport_connected")
        self._observer.sending()

    def on_completed(self, success: bool) -> None:
        if self._latch.is_set:
            # Duplicate or contradicting notification from the transport.
            self._log.debug("duplicate_completion_ignored", success=success)
            return
        if success:
            self._finish(Outcome.sent())
        else:
            self._finish(Outcome.failed(completion_failure_message(self._transport.error_string)))

    def on_socket_error(self, kind: SocketErrorKind, message: str) -> None:
        self._log.debug("transport_socket_error", kind=kind.value)
        self._finish(Outcome.failed(message))

    def on_encryption_errors(self, problems: Sequence[EncryptionProblem]) -> None:
        self._log.debug("transport_encryption_errors", count=len(problems))
        self._finish(Outcome.failed(encryption_failure_message(problems)))

    def on_raw_bytes_read(self, data: bytes) -> None:
        self._observer.logged(LogDirection.READ, LOG_LABEL, data.decode("utf-8", errors="replace"))

    def on_raw_bytes_written(self, data: bytes) -> None:
        self._observer.logged(
            LogDirection.WRITTEN, LOG_LABEL, data.decode("utf-8", errors="replace")
        )


class SmtpSessionFactory(SessionFactory):
    """Holds a :class:`SubmissionConfig` and builds one session per message.

    *transport_factory* defaults to :class:`AiosmtplibTransport`; tests
    pass a fake.
    """

    def __init__(
        self,
        config: SubmissionConfig,
        transport_factory: Callable[[SubmissionConfig], TransportEngine] | None = None,
    ) -> None:
        self.config = config
        self._transport_factory = transport_factory or _default_transport

    def create(self, observer: SessionObserver) -> SmtpSession:
        return SmtpSession(self.config, observer, self._transport_factory(self.config))


def _default_transport(config: SubmissionConfig) -> TransportEngine:
    from .aiosmtp_engine import AiosmtplibTransport

    return AiosmtplibTransport(
        timeout=config.timeout_seconds,
        validate_certs=config.validate_certs,
    )
