"""Transport engine backed by aiosmtplib.

Operations are queued and executed strictly in order by one asyncio task,
so the session can issue connect, STARTTLS, AUTH and the submission in a
single synchronous burst without two commands ever being in flight.
"""

from __future__ import annotations

import asyncio
import socket
import ssl
from collections import deque
from collections.abc import Awaitable, Callable, Iterator, Sequence

import aiosmtplib
import structlog

from .framing import to_crlf
from .models import AuthMechanism, EncryptionProblem, SocketErrorKind
from .transport import TransportEngine, TransportEventHandler

logger = structlog.get_logger()

Step = Callable[[], Awaitable[None]]

DATA_TERMINATOR = b".\r\n"


class AiosmtplibTransport(TransportEngine):
    """Pipelined SMTP client built on :class:`aiosmtplib.SMTP`.

    Must be driven from a running event loop.
    """

    def __init__(
        self,
        *,
        timeout: float = 60.0,
        validate_certs: bool = True,
        local_hostname: str | None = None,
    ) -> None:
        self._timeout = timeout
        self._validate_certs = validate_certs
        self._local_hostname = local_hostname
        self._handler: TransportEventHandler | None = None
        self._smtp: aiosmtplib.SMTP | None = None
        self._pending: deque[Step] = deque()
        self._runner: asyncio.Task[None] | None = None
        self._submitted = False
        self._error_string = ""

    def bind(self, handler: TransportEventHandler) -> None:
        self._handler = handler

    @property
    def handler(self) -> TransportEventHandler:
        assert self._handler is not None, "Transport not bound to a handler"
        return self._handler

    @property
    def error_string(self) -> str:
        return self._error_string

    @property
    def busy(self) -> bool:
        return bool(self._pending) or (self._runner is not None and not self._runner.done())

    # ------------------------------------------------------------------
    # TransportEngine operations (fire-and-forget)
    # ------------------------------------------------------------------

    def connect(self, host: str, port: int, encrypted: bool) -> None:
        self._enqueue(lambda: self._do_connect(host, port, encrypted))

    def upgrade_to_encryption(self) -> None:
        self._enqueue(self._do_starttls)

    def authenticate(self, username: str, password: str, mechanism: AuthMechanism) -> None:
        self._enqueue(lambda: self._do_authenticate(username, password, mechanism))

    def submit_data(self, sender: bytes, recipients: Sequence[bytes], data: bytes) -> None:
        recipients = list(recipients)
        self._enqueue(lambda: self._do_submit_data(sender, recipients, data))

    def submit_by_reference(self, sender: bytes, recipients: Sequence[bytes], token: bytes) -> None:
        recipients = list(recipients)
        self._enqueue(lambda: self._do_submit_by_reference(sender, recipients, token))

    def disconnect(self) -> None:
        if self._smtp is None and not self.busy:
            return
        self._enqueue(self._do_quit)

    def abort(self) -> None:
        if self._pending:
            logger.info("smtp_pipeline_aborted", dropped=len(self._pending))
        self._pending.clear()
        self._submitted = False
        self.disconnect()

    async def join(self) -> None:
        """Wait until every queued step has run."""
        while self._runner is not None and not self._runner.done():
            await self._runner

    async def aclose(self) -> None:
        """Stop the pipeline immediately and drop the connection."""
        self._pending.clear()
        if self._runner is not None and not self._runner.done():
            self._runner.cancel()
            try:
                await self._runner
            except asyncio.CancelledError:
                pass
        self._close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _enqueue(self, step: Step) -> None:
        self._pending.append(step)
        if self._runner is None or self._runner.done():
            self._runner = asyncio.get_running_loop().create_task(self._run_pipeline())

    async def _run_pipeline(self) -> None:
        while self._pending:
            step = self._pending.popleft()
            try:
                await step()
            except (aiosmtplib.SMTPResponseException, aiosmtplib.SMTPNotSupported) as exc:
                self._error_string = _error_text(exc)
                logger.warning("smtp_command_rejected", error=self._error_string)
                self._abort()
                self.handler.on_completed(False)
                return
            except (aiosmtplib.SMTPException, OSError) as exc:
                self._abort()
                problems = encryption_problems(exc)
                if problems:
                    logger.warning("smtp_tls_failed", problems=len(problems))
                    self.handler.on_encryption_errors(problems)
                else:
                    kind = socket_error_kind(exc)
                    logger.warning("smtp_socket_error", kind=kind.value, error=str(exc))
                    self.handler.on_socket_error(kind, str(exc))
                return
            except Exception as exc:
                self._error_string = str(exc)
                logger.exception("smtp_step_failed", error=self._error_string)
                self._abort()
                self.handler.on_completed(False)
                return

        if self._submitted:
            self._submitted = False
            self.handler.on_completed(True)

    def _abort(self) -> None:
        self._pending.clear()
        self._submitted = False
        self._close()

    def _close(self) -> None:
        if self._smtp is not None:
            self._smtp.close()
            self._smtp = None

    def _connected(self) -> aiosmtplib.SMTP:
        if self._smtp is None:
            raise aiosmtplib.SMTPServerDisconnected("Not connected")
        return self._smtp

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _do_connect(self, host: str, port: int, encrypted: bool) -> None:
        self._error_string = ""
        self._smtp = aiosmtplib.SMTP(
            hostname=host,
            port=port,
            use_tls=encrypted,
            start_tls=False,
            timeout=self._timeout,
            validate_certs=self._validate_certs,
            local_hostname=self._local_hostname,
        )
        response = await self._smtp.connect()
        self._log_read(response)
        logger.info("smtp_connected", host=host, port=port, tls=encrypted)
        self.handler.on_connected()

    async def _do_starttls(self) -> None:
        smtp = self._connected()
        self._log_written(b"STARTTLS")
        response = await smtp.starttls()
        self._log_read(response)

    async def _do_authenticate(self, username: str, password: str, mechanism: AuthMechanism) -> None:
        smtp = self._connected()
        methods = {
            AuthMechanism.ANY: smtp.login,
            AuthMechanism.PLAIN: smtp.auth_plain,
            AuthMechanism.LOGIN: smtp.auth_login,
            AuthMechanism.CRAM_MD5: smtp.auth_crammd5,
        }
        # Credentials never reach the I/O log.
        self._log_written(f"AUTH {mechanism.value.upper().replace('_', '-')} ****".encode())
        response = await methods[mechanism](username, password)
        self._log_read(response)

    async def _do_submit_data(self, sender: bytes, recipients: list[bytes], data: bytes) -> None:
        smtp = self._connected()
        await self._send_envelope(smtp, sender, recipients)

        self._log_written(b"DATA")
        response = await smtp.execute_command(b"DATA")
        self._log_read(response)
        if response.code != aiosmtplib.SMTPStatus.start_input:
            raise aiosmtplib.SMTPDataError(response.code, response.message)

        # The payload is already dot-stuffed; only line ends are rewritten.
        data = to_crlf(data)
        if not data.endswith(b"\r\n"):
            data += b"\r\n"
        assert smtp.protocol is not None
        smtp.protocol.write(data + DATA_TERMINATOR)
        self._log_written(data + DATA_TERMINATOR)

        response = await smtp.protocol.read_response(timeout=self._timeout)
        self._log_read(response)
        if response.code != aiosmtplib.SMTPStatus.completed:
            raise aiosmtplib.SMTPDataError(response.code, response.message)
        self._submitted = True

    async def _do_submit_by_reference(
        self,
        sender: bytes,
        recipients: list[bytes],
        token: bytes,
    ) -> None:
        smtp = self._connected()
        await self._send_envelope(smtp, sender, recipients)

        # RFC 4468: the final BURL carries LAST and completes the transaction.
        self._log_written(b"BURL " + token + b" LAST")
        response = await smtp.execute_command(b"BURL", token, b"LAST")
        self._log_read(response)
        if response.code != aiosmtplib.SMTPStatus.completed:
            raise aiosmtplib.SMTPResponseException(response.code, response.message)
        self._submitted = True

    async def _send_envelope(
        self,
        smtp: aiosmtplib.SMTP,
        sender: bytes,
        recipients: list[bytes],
    ) -> None:
        self._log_written(b"MAIL FROM:<" + sender + b">")
        response = await smtp.mail(sender.decode("utf-8"), encoding="utf-8")
        self._log_read(response)
        for recipient in recipients:
            self._log_written(b"RCPT TO:<" + recipient + b">")
            response = await smtp.rcpt(recipient.decode("utf-8"), encoding="utf-8")
            self._log_read(response)

    async def _do_quit(self) -> None:
        if self._smtp is None:
            return
        smtp, self._smtp = self._smtp, None
        if not smtp.is_connected:
            return
        self._log_written(b"QUIT")
        try:
            response = await smtp.quit()
            self._log_read(response)
        except aiosmtplib.SMTPException:
            smtp.close()
        logger.info("smtp_disconnected")

    # ------------------------------------------------------------------
    # Raw I/O pass-through
    # ------------------------------------------------------------------

    def _log_written(self, data: bytes) -> None:
        self.handler.on_raw_bytes_written(data)

    def _log_read(self, response: aiosmtplib.SMTPResponse) -> None:
        self.handler.on_raw_bytes_read(f"{response.code} {response.message}".encode())


# ------------------------------------------------------------------
# Error classification
# ------------------------------------------------------------------


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its causes, stopping on cycles."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or current.__context__


def encryption_problems(exc: BaseException) -> list[EncryptionProblem]:
    """Extract TLS problems from *exc*; empty if it is not a TLS failure."""
    for error in _exception_chain(exc):
        if isinstance(error, ssl.SSLCertVerificationError):
            return [
                EncryptionProblem(
                    description=getattr(error, "verify_message", None) or str(error),
                    code=getattr(error, "verify_code", None),
                )
            ]
        if isinstance(error, ssl.SSLError):
            return [EncryptionProblem(description=getattr(error, "reason", None) or str(error))]
    return []


def socket_error_kind(exc: BaseException) -> SocketErrorKind:
    for error in _exception_chain(exc):
        if isinstance(error, ConnectionRefusedError):
            return SocketErrorKind.CONNECTION_REFUSED
        if isinstance(error, socket.gaierror):
            return SocketErrorKind.HOST_NOT_FOUND
        if isinstance(error, TimeoutError):
            return SocketErrorKind.TIMEOUT
        if isinstance(error, (aiosmtplib.SMTPServerDisconnected, ConnectionResetError)):
            return SocketErrorKind.REMOTE_CLOSED
    return SocketErrorKind.UNKNOWN


def _error_text(exc: Exception) -> str:
    if isinstance(exc, aiosmtplib.SMTPResponseException):
        return exc.message
    return str(exc)
