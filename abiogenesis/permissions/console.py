"""Line-oriented input/output port used by the consent prompt."""

import io
import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO

__all__ = ["Console", "StreamConsole"]


class Console(ABC):
    @abstractmethod
    def write(self, text: str) -> None:
        ...

    @abstractmethod
    def readline(self) -> str:
        """Return one line including its newline, or "" at end of input."""
        ...


class StreamConsole(Console):
    """
    Console over a pair of text streams.

    Defaults to the process's stdin/stdout; tests pass ``io.StringIO``
    objects holding scripted answers.
    """

    def __init__(self, input: Optional[TextIO] = None, output: Optional[TextIO] = None) -> None:
        self._input = input
        self._output = output

    @property
    def input(self) -> TextIO:
        return self._input or sys.stdin

    @property
    def output(self) -> TextIO:
        return self._output or sys.stdout

    def write(self, text: str) -> None:
        self.output.write(text)
        self.output.flush()

    def readline(self) -> str:
        stream = self.input
        # undecodable bytes read as U+FFFD and fail the choice check
        if isinstance(stream, io.TextIOWrapper) and stream.errors != "replace":
            stream.reconfigure(errors="replace")
        return stream.readline()
