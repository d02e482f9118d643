"""Running external commands."""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass

from elemental.logger import Logger


class CommandError(Exception):
    """An external command could not be run or exited unsuccessfully."""

    def __init__(
        self,
        command: str,
        args: tuple[str, ...],
        output: bytes = b"",
        returncode: int | None = None,
        reason: str = "",
    ) -> None:
        self.command = command
        self.args_list = args
        self.output = output
        self.returncode = returncode
        self.reason = reason
        cmdline = " ".join((command, *args))
        super().__init__(f"command '{cmdline}' failed: {reason}")


class Runner(ABC):
    """Something that runs a command and returns its combined output."""

    logger: Logger | None = None

    @abstractmethod
    def run(self, command: str, *args: str) -> bytes:
        """Run the command; raise CommandError on failure."""


@dataclass
class RealRunner(Runner):
    """Runs commands on the host, capturing stdout and stderr together."""

    logger: Logger | None = None

    def run(self, command: str, *args: str) -> bytes:
        if self.logger is not None:
            self.logger.debug(f"Running cmd: '{command} {' '.join(args)}'")
        try:
            completed = subprocess.run(
                [command, *args],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except OSError as exc:
            raise CommandError(command, args, reason=str(exc)) from exc
        if completed.returncode != 0:
            raise CommandError(
                command,
                args,
                output=completed.stdout,
                returncode=completed.returncode,
                reason=f"exit status {completed.returncode}",
            )
        return completed.stdout