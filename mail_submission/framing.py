"""Transport framing helpers for the SMTP DATA stream."""

from __future__ import annotations

import re

_BARE_CR_BEFORE_DOT = re.compile(rb"\r(?=\.)")
_BARE_LINE_END = re.compile(rb"\r(?!\n)|(?<!\r)\n")


def dot_stuff(data: bytes) -> bytes:
    """Escape lines that start with a period (RFC 5321, section 4.5.2).

    A leading ``.`` on any line is doubled so the server cannot mistake
    it for the end-of-data marker.  Not idempotent: stuffing twice adds
    a second period.
    """
    if data.startswith(b"."):
        data = b"." + data
    return data.replace(b"\n.", b"\n..")


def to_crlf(data: bytes) -> bytes:
    """Rewrite bare LF and bare CR line ends as CRLF.

    Meant for payloads that already went through :func:`dot_stuff`.  That
    pass only sees LF-terminated lines, so a period after a bare CR gets
    its escape here, when the CR turns into a line break.
    """
    data = _BARE_CR_BEFORE_DOT.sub(b"\r\n.", data)
    return _BARE_LINE_END.sub(b"\r\n", data)
