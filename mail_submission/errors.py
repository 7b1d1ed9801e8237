"""Exceptions and the fixed user-visible failure texts."""

from __future__ import annotations

import html
from collections.abc import Iterable

from .models import EncryptionProblem

CANCELLED_MESSAGE = "Sending of the message was cancelled"
GENERIC_FAILURE_MESSAGE = "Sending of the message failed."
FAILURE_WITH_ERROR_MESSAGE = "Sending of the message failed with the following error: {error}"
UNKNOWN_MODE_MESSAGE = "Unknown SMTP mode"
ENCRYPTION_FAILURE_HEADER = "<p>Cannot send message due to an SSL/TLS error</p>\n"


class SubmissionError(Exception):
    """Base class for errors raised to callers of a submission session."""


class SessionAlreadyUsedError(SubmissionError):
    """Raised when a second send is attempted on a single-use session."""


def format_encryption_errors(problems: Iterable[EncryptionProblem]) -> str:
    """Render TLS validation problems as an HTML list.

    Each problem becomes one escaped ``<li>``; the numeric verification
    code, when known, is appended in parentheses.
    """
    items: list[str] = []
    for problem in problems:
        text = html.escape(problem.description)
        if problem.code is not None:
            text += f" (code {problem.code})"
        items.append(f"<li>{text}</li>")
    if not items:
        return "<ul><li>Unknown TLS error</li></ul>"
    return "<ul>\n" + "\n".join(items) + "\n</ul>"


def encryption_failure_message(problems: Iterable[EncryptionProblem]) -> str:
    return ENCRYPTION_FAILURE_HEADER + format_encryption_errors(problems)


def completion_failure_message(error_string: str) -> str:
    """Failure text for an unsuccessful transport completion."""
    if not error_string:
        return GENERIC_FAILURE_MESSAGE
    return FAILURE_WITH_ERROR_MESSAGE.format(error=error_string)
