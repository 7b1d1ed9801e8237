"""Cancel an in-flight submission on SIGTERM / SIGINT."""

from __future__ import annotations

import asyncio
import signal

import structlog

from .interface import SubmissionSession

logger = structlog.get_logger()


def install_signal_handlers(session: SubmissionSession) -> None:
    """Register SIGTERM and SIGINT handlers that cancel *session*.

    Call this once from the running event loop.  Cancelling is
    idempotent, so repeated signals are harmless.
    """
    loop = asyncio.get_running_loop()

    def _handle(sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        session.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle, sig)


def remove_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.remove_signal_handler(sig)
