"""Process-spawning port."""

import logging
import shutil
import subprocess
from abc import ABC, abstractmethod

from .models import ProcessOutput

__all__ = ["ProcessRunner", "SubprocessRunner"]

logger = logging.getLogger(__name__)


class ProcessRunner(ABC):
    """Runs a program to completion and reports its captured output."""

    @abstractmethod
    def run(self, program: str, args: list[str]) -> ProcessOutput:
        """
        Raises:
            FileNotFoundError: *program* does not exist.
            OSError:           the process could not be spawned.
        """
        ...

    @abstractmethod
    def program_exists(self, program: str) -> bool:
        """Return True if *program* resolves on the executable search path."""
        ...


class SubprocessRunner(ProcessRunner):
    """Production runner: ``subprocess.run`` with captured pipes, no timeout."""

    def run(self, program: str, args: list[str]) -> ProcessOutput:
        logger.debug("Spawning %s %s", program, args)
        proc = subprocess.run([program, *args], capture_output=True)
        return ProcessOutput(
            returncode=proc.returncode,
            stdout=proc.stdout.decode("utf-8", errors="replace"),
            stderr=proc.stderr.decode("utf-8", errors="replace"),
        )

    def program_exists(self, program: str) -> bool:
        return shutil.which(program) is not None
