from __future__ import annotations

from dataclasses import dataclass
import logging
import shlex
import shutil
import subprocess
from typing import Sequence

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when an external command cannot be executed at all."""


@dataclass(frozen=True)
class CommandResult:
    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def failure_reason(self) -> str:
        return (
            self.stderr.strip()
            or self.stdout.strip()
            or f"{self.command[0]} exited with status {self.returncode}"
        )


class CommandRunner:
    def run(self, command: Sequence[str]) -> CommandResult:
        if not command:
            raise CommandError("cannot run an empty command")

        program = command[0]
        binary = shutil.which(program)
        if binary is None:
            raise CommandError(f"{program} is required but was not found in PATH")

        logger.debug("+ %s", shlex.join(command))
        try:
            completed = subprocess.run(
                [binary, *command[1:]],
                check=False,
                capture_output=True,
                text=True,
            )
        except OSError as error:
            raise CommandError(f"failed to execute {program}: {_error_message(error)}") from error

        return CommandResult(
            command=tuple(command),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


def _error_message(error: Exception) -> str:
    message = str(error).strip()
    return message or error.__class__.__name__
