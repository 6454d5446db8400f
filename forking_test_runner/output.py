"""Output controllers deciding what a child's captured output looks like."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO

FAILURE_START_MARKER = ">>>>>>"
FAILURE_END_MARKER = "<<<<<<"
PASS_MARKER = b"."
FAIL_MARKER = b"F"


@dataclass(kw_only=True)
class OutputController(ABC):
    """Receives the output of one child at a time.

    ``begin`` is called before a child starts, ``write`` for every chunk it
    produces and ``finish`` once it exited.
    """

    stream: BinaryIO

    @abstractmethod
    def begin(self, path: str) -> None:
        """Prepare for the output of the child running path."""

    @abstractmethod
    def write(self, chunk: bytes) -> None:
        """Handle a chunk of the running child's output."""

    @abstractmethod
    def finish(self, path: str, *, succeeded: bool) -> None:
        """Handle the end of the child running path."""

    def close(self) -> None:
        """Called once after the last child."""

    def _emit(self, data: bytes) -> None:
        self.stream.write(data)
        self.stream.flush()


@dataclass(kw_only=True)
class StreamingOutput(OutputController):
    """Passes output through as soon as it is read."""

    def begin(self, path: str) -> None:
        self._emit(f"Running tests {path}\n".encode())

    def write(self, chunk: bytes) -> None:
        self._emit(chunk)

    def finish(self, path: str, *, succeeded: bool) -> None:
        self._emit(f"{path} ---- {'OK' if succeeded else 'Fail'}\n".encode())


@dataclass(kw_only=True)
class BufferedOutput(OutputController):
    """Holds output back and only releases it when the child failed.

    A progress marker is written for every finished file. The output of a
    failed file is written in one piece between start and end markers.
    """

    _buffer: bytearray = field(default_factory=bytearray, init=False, repr=False)
    _markers: int = field(default=0, init=False)

    def begin(self, path: str) -> None:
        self._buffer.clear()

    def write(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def finish(self, path: str, *, succeeded: bool) -> None:
        if succeeded:
            self._emit(PASS_MARKER)
            self._markers += 1
        else:
            block = bytearray(FAIL_MARKER)
            block.extend(f"\n{FAILURE_START_MARKER} {path}\n".encode())
            block.extend(self._buffer)
            if self._buffer and not self._buffer.endswith(b"\n"):
                block.extend(b"\n")
            block.extend(f"{FAILURE_END_MARKER} {path}\n".encode())
            self._emit(bytes(block))
            self._markers = 0
        self._buffer.clear()

    def close(self) -> None:
        if self._markers:
            self._emit(b"\n")


def create_output_controller(stream: BinaryIO, *, quiet: bool) -> OutputController:
    """Select the output mode for a run."""
    if quiet:
        return BufferedOutput(stream=stream)
    return StreamingOutput(stream=stream)
