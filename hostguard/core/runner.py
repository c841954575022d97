"""Subprocess runner shared by every host probe.

:class:`CommandRunner` wraps :func:`subprocess.run` so that callers never see
an exception from a missing binary or an elapsed deadline.  Failures are
encoded in the returned :class:`CommandResult` instead:

* ``returncode == 127`` — the program could not be started.
* ``returncode == 124`` and ``timed_out`` — the deadline elapsed; ``output``
  holds whatever was captured before the process was killed.

Tests substitute any object with a compatible ``run`` method.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Mapping, Protocol, Sequence

logger = logging.getLogger(__name__)

RC_NOT_FOUND = 127
RC_TIMEOUT = 124


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command.

    Attributes:
        args: The argument vector that was executed.
        returncode: Process exit status (see module docstring for the
            synthetic codes).
        output: Captured standard output, decoded as UTF-8 with replacement.
            Includes standard error when the command was run with
            ``merge_stderr=True``.
        timed_out: ``True`` when the deadline elapsed.
    """

    args: tuple[str, ...]
    returncode: int
    output: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Runner(Protocol):
    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        ...


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class CommandRunner:
    """Run external commands synchronously and capture their output."""

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        merge_stderr: bool = False,
    ) -> CommandResult:
        """Execute *args* and return a :class:`CommandResult`.

        Args:
            args: Program and arguments; no shell is involved.
            timeout: Deadline in seconds, or ``None`` to wait indefinitely.
            env: Extra environment variables layered over the current
                process environment.
            merge_stderr: Capture standard error into ``output`` instead of
                discarding it.
        """
        argv = tuple(args)
        full_env = None
        if env:
            full_env = {**os.environ, **env}

        logger.debug("Running command args=%s timeout=%s", argv, timeout)
        try:
            completed = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
                env=full_env,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("Command timed out after %ss args=%s", timeout, argv)
            return CommandResult(
                args=argv,
                returncode=RC_TIMEOUT,
                output=_decode(exc.output),
                timed_out=True,
            )
        except OSError as exc:
            logger.warning("Command could not be started args=%s error=%r", argv, exc)
            return CommandResult(args=argv, returncode=RC_NOT_FOUND)

        return CommandResult(
            args=argv,
            returncode=completed.returncode,
            output=_decode(completed.stdout),
        )
