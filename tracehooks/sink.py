"""
Output sinks for trace records.

A sink receives one already rendered line per hook invocation and appends it,
in call order, to its destination. Writes are serialized with a lock so one
record is never interleaved with another when the traced program is
multi-threaded.
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from tracehooks.errors import SinkError


@runtime_checkable
class TraceSink(Protocol):
    """Where rendered trace records get appended."""

    def write_record(self, line: str) -> None: ...

    def close(self) -> None: ...


class StreamSink(object):
    """
    Appends records to a text stream. The stream is not owned: closing the
    sink leaves it open.
    """
    def __init__(self, stream: TextIO | None = None, flush: bool = True):
        self.stream = stream if stream is not None else sys.stdout
        self.flush = flush
        self._lock = threading.Lock()

    def write_record(self, line: str) -> None:
        with self._lock:
            try:
                self.stream.write(line + "\n")
                if self.flush:
                    self.stream.flush()
            except (OSError, ValueError) as err:
                raise SinkError('Cannot write trace record: %s' % err) from err

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


class FileSink(StreamSink):
    """
    Owns a trace file. Parent directories are created on open.
    """
    def __init__(self, path: str | Path, flush: bool = True):
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fh = open(self.path, 'w', encoding='utf-8')
        except OSError as err:
            raise SinkError('Cannot open trace file %s: %s' % (self.path, err)) from err
        super().__init__(fh, flush=flush)

    def close(self) -> None:
        with self._lock:
            if not self.stream.closed:
                self.stream.close()


class MemorySink(object):
    """
    Captures records in memory, mostly for tests.
    """
    def __init__(self):
        self.lines: list[str] = []
        self._lock = threading.Lock()

    def write_record(self, line: str) -> None:
        with self._lock:
            self.lines.append(line)

    def getvalue(self) -> str:
        return "".join(line + "\n" for line in self.lines)

    def close(self) -> None:
        pass


def open_sink(target: str = "-", flush: bool = True) -> StreamSink:
    """
    Open the sink named by an output setting: "-" is stdout, "stderr" is
    stderr, anything else is a file path.
    """
    if target == "-":
        return StreamSink(sys.stdout, flush=flush)
    if target == "stderr":
        return StreamSink(sys.stderr, flush=flush)
    return FileSink(target, flush=flush)
