"""Entry point for the mail submission package.

Usage::

    python -m mail_submission data <message-file> <from> <to> [<to> ...]
    python -m mail_submission relay <url> <from> <to> [<to> ...]

Server settings come from ``SMTP_*`` environment variables (see
:class:`~mail_submission.config.SubmissionConfig`).  The password is
prompted for when the server requires authentication.
"""

from __future__ import annotations

import asyncio
import getpass
import os
import sys
import threading
from collections.abc import Sequence
from pathlib import Path

import structlog

from .config import SubmissionConfig
from .interface import SessionObserver
from .logging import setup_logging
from .models import LogDirection, Outcome, OutcomeKind, TransferVariant
from .session import SmtpSession, SmtpSessionFactory
from .shutdown import install_signal_handlers, remove_signal_handlers

logger = structlog.get_logger()

USAGE = "Usage: python -m mail_submission <data|relay> <message-file|url> <from> <to> [<to> ...]"

EXIT_CODES = {
    OutcomeKind.SENT: 0,
    OutcomeKind.FAILED: 1,
    OutcomeKind.CANCELLED: 2,
}


def read_password(prompt: str) -> asyncio.Future[str]:
    """Prompt for a password on a daemon thread.

    The prompt stays out of the default executor, which ``asyncio.run``
    joins on exit, so a cancelled submission does not wait for Enter.
    ``EOFError`` and ``KeyboardInterrupt`` end up on the returned future.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def _deliver(password: str | None, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(password or "")

    def _worker() -> None:
        try:
            password, error = getpass.getpass(prompt), None
        except (EOFError, KeyboardInterrupt) as exc:
            password, error = None, exc
        try:
            loop.call_soon_threadsafe(_deliver, password, error)
        except RuntimeError:
            logger.debug("password_prompt_outlived_loop")

    threading.Thread(target=_worker, name="password-prompt", daemon=True).start()
    return future


class CliObserver(SessionObserver):
    """Logs session progress and resolves :attr:`done` with the outcome."""

    def __init__(self) -> None:
        self.session: SmtpSession | None = None
        self.done: asyncio.Future[Outcome] = asyncio.get_running_loop().create_future()
        self._prompt_task: asyncio.Task[None] | None = None

    def connecting(self) -> None:
        logger.info("connecting")

    def sending(self) -> None:
        logger.info("sending")

    def progress_max(self, total: int) -> None:
        logger.debug("progress_max", total=total)

    def credential_requested(self, username: str, host: str) -> None:
        self._prompt_task = asyncio.get_running_loop().create_task(self._prompt(username, host))

    async def _prompt(self, username: str, host: str) -> None:
        assert self.session is not None
        try:
            password = await read_password(f"Password for {username}@{host}: ")
        except (EOFError, KeyboardInterrupt):
            self.session.cancel()
            return
        self.session.supply_credential(password)

    def sent(self) -> None:
        self._resolve(Outcome.sent())

    def failed(self, message: str) -> None:
        self._resolve(Outcome.failed(message))

    def cancelled(self, message: str) -> None:
        self._resolve(Outcome.cancelled(message))

    def logged(self, direction: LogDirection, label: str, text: str) -> None:
        logger.debug("smtp_io", direction=direction.value, label=label, text=text)

    def _resolve(self, outcome: Outcome) -> None:
        if not self.done.done():
            self.done.set_result(outcome)


async def submit(
    config: SubmissionConfig,
    variant: TransferVariant,
    payload: bytes,
    sender: bytes,
    recipients: Sequence[bytes],
    *,
    factory: SmtpSessionFactory | None = None,
) -> Outcome:
    """Run one submission to completion and return its outcome."""
    observer = CliObserver()
    session = (factory or SmtpSessionFactory(config)).create(observer)
    observer.session = session

    install_signal_handlers(session)
    try:
        if variant is TransferVariant.DATA:
            session.send_data(sender, recipients, payload)
        else:
            session.send_relay(sender, recipients, payload)
        return await observer.done
    finally:
        remove_signal_handlers()
        await session.aclose()


def main() -> None:
    if len(sys.argv) < 5 or sys.argv[1] not in ("data", "relay"):
        print(USAGE, file=sys.stderr)
        sys.exit(2)

    mode, source, sender, *recipients = sys.argv[1:]

    setup_logging(json=False, level=os.environ.get("LOG_LEVEL", "INFO"))
    config = SubmissionConfig()

    if mode == "data":
        variant = TransferVariant.DATA
        payload = Path(source).read_bytes()
    else:
        variant = TransferVariant.RELAY_URL
        payload = source.encode()

    outcome = asyncio.run(
        submit(config, variant, payload, sender.encode(), [r.encode() for r in recipients])
    )
    if outcome.message:
        print(outcome.message, file=sys.stderr)
    sys.exit(EXIT_CODES[outcome.kind])


if __name__ == "__main__":
    main()
