"""Integer sanitizer for captured command output.

Probes capture counts from tools whose output is not under our control
(``apt list``, ``dnf list``, ``clamscan`` summaries, hand-edited status
files).  :func:`sanitize` collapses anything that is not a plain run of ASCII
digits to ``0`` so downstream comparisons never fail.
"""

from __future__ import annotations

import re
from typing import Any

_DIGITS = re.compile(r"[0-9]+")


def sanitize(raw: Any) -> int:
    """Return *raw* as a non-negative integer, or ``0`` if it is malformed.

    Only a ``str`` consisting entirely of ASCII digits is accepted.  Empty
    strings, surrounding whitespace or newlines, signs, decimals and
    non-string values all yield ``0``.

    >>> sanitize("7654")
    7654
    >>> sanitize("12\\n")
    0
    """
    if not isinstance(raw, str) or _DIGITS.fullmatch(raw) is None:
        return 0
    try:
        return int(raw)
    except ValueError:
        # Exceeds the interpreter's int string-conversion limit.
        return 0
