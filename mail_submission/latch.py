"""Single-assignment primitives used by the session controller.

:class:`OutcomeLatch` holds the terminal outcome: the first write wins
and every later write is dropped.  The transport is known to report
duplicate and even contradictory completions, so the controller routes
every terminal signal through the latch rather than checking flags at
each call site.

:class:`CredentialSlot` is a one-slot promise for the password.  It may
be resolved at any time; resolution only resumes the session when the
session is actually waiting on it.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from .models import Outcome

logger = structlog.get_logger()


class OutcomeLatch:
    """First terminal outcome wins."""

    def __init__(self) -> None:
        self._outcome: Outcome | None = None

    @property
    def outcome(self) -> Outcome | None:
        return self._outcome

    @property
    def is_set(self) -> bool:
        return self._outcome is not None

    def settle(self, outcome: Outcome) -> bool:
        """Record *outcome* if nothing is recorded yet.

        Returns ``True`` when this call set the latch, ``False`` when an
        earlier outcome was already in place (the new one is discarded).
        """
        if self._outcome is not None:
            logger.debug(
                "outcome_suppressed",
                kept=self._outcome.kind.value,
                dropped=outcome.kind.value,
            )
            return False
        self._outcome = outcome
        return True


class CredentialSlot:
    """Stores a password and resumes at most one waiting continuation."""

    def __init__(self) -> None:
        self._value: str | None = None
        self._continuation: Callable[[], None] | None = None

    @property
    def value(self) -> str:
        return self._value or ""

    @property
    def has_value(self) -> bool:
        # An empty password is treated as "not supplied yet".
        return bool(self._value)

    @property
    def awaited(self) -> bool:
        return self._continuation is not None

    def wait(self, continuation: Callable[[], None]) -> None:
        """Register *continuation* to run on the next :meth:`resolve`."""
        self._continuation = continuation

    def resolve(self, value: str) -> bool:
        """Store *value*; run the waiting continuation if there is one.

        Returns ``True`` if a continuation was resumed.
        """
        self._value = value
        continuation, self._continuation = self._continuation, None
        if continuation is None:
            return False
        continuation()
        return True

    def abandon(self) -> None:
        """Drop the waiting continuation; later values are stored only."""
        self._continuation = None
