"""Subprocess execution with consistent logging."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        message = f"command failed ({returncode}): {format_argv(self.argv)}"
        if stderr.strip():
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandFn(Protocol):
    def __call__(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        cwd: Path | None = None,
        input_text: str | None = None,
        dry_run: bool = False,
    ) -> CmdResult: ...


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(arg)) for arg in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    cwd: Path | None = None,
    input_text: str | None = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command and return its captured output.

    The command line is always logged. In ``dry_run`` mode nothing is executed
    and an empty, successful result is returned.
    """

    argv_list = [str(arg) for arg in argv]
    if cwd is not None:
        logger.info("CMD (cwd=%s) %s", cwd, format_argv(argv_list))
    else:
        logger.info("CMD %s", format_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        proc = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        raise CommandError(argv_list, 127, f"executable not found: {exc.filename or argv_list[0]}") from exc

    if proc.stdout:
        logger.debug("STDOUT %s", proc.stdout.strip())
    if proc.stderr:
        logger.debug("STDERR %s", proc.stderr.strip())

    if check and proc.returncode != 0:
        raise CommandError(argv_list, proc.returncode, proc.stderr)

    return CmdResult(argv=argv_list, returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr)
