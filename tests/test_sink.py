import io
import sys

import pytest

from tracehooks import FileSink, MemorySink, StreamSink, TraceSink, open_sink
from tracehooks.errors import SinkError


def test_sinks_satisfy_protocol(tmp_path):
    with FileSink(tmp_path / "t.log") as fs:
        assert isinstance(fs, TraceSink)
    assert isinstance(MemorySink(), TraceSink)
    assert isinstance(StreamSink(io.StringIO()), TraceSink)


def test_file_sink_creates_parents_and_writes(tmp_path):
    path = tmp_path / "traces" / "run1" / "trace.txt"
    with FileSink(path) as sink:
        sink.write_record("a")
        sink.write_record("b")

    assert path.read_text() == "a\nb\n"


def test_file_sink_write_after_close(tmp_path):
    sink = FileSink(tmp_path / "trace.txt")
    sink.close()
    sink.close()

    with pytest.raises(SinkError):
        sink.write_record("late")


def test_file_sink_open_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")

    with pytest.raises(SinkError):
        FileSink(blocker / "trace.txt")


def test_stream_sink_is_not_owned():
    stream = io.StringIO()
    with StreamSink(stream, flush=False) as sink:
        sink.write_record("x")

    assert not stream.closed
    assert stream.getvalue() == "x\n"


def test_memory_sink_getvalue():
    sink = MemorySink()
    sink.write_record("one")
    sink.write_record("two")
    assert sink.getvalue() == "one\ntwo\n"


def test_open_sink_targets(tmp_path):
    assert open_sink("-").stream is sys.stdout
    assert open_sink("stderr").stream is sys.stderr

    sink = open_sink(str(tmp_path / "out.txt"), flush=False)
    try:
        assert isinstance(sink, FileSink)
        assert sink.flush is False
    finally:
        sink.close()
