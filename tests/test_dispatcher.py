import io
import threading
import typing

import pytest

from tracehooks import BlockType, BranchTarget, HookDispatcher, Location, MemArg, MemorySink, StreamSink
from tracehooks.errors import SinkError
from tracehooks.values import Value

L = "{func: 0, instr: 3}"


@pytest.mark.parametrize(
    "method,args,expected",
    [
        ("if_", (1,), f"{L} if, condition = 1"),
        ("nop", (), f"{L} nop"),
        ("unreachable", (), f"{L} unreachable"),
        ("drop", (), f"{L} drop"),
        ("select", (0,), f"{L} select, condition = 0"),
        ("return_", ([3, 4],), f"{L} return, values = [3, 4]"),
        ("call_result", ([3],), f"{L} call result = [3]"),
        ("const", (42,), f"{L} const, value = 42"),
        ("unary", ("i32.eqz", 0, 1), f"{L} i32.eqz input = 0 result = 1"),
        ("binary", ("i32.add", 1, 2, 3), f"{L} i32.add first = 1 second = 2 result = 3"),
        ("current_memory", (1,), f"{L} current_memory, size (in pages) = 1"),
        ("local", ("get_local", 0, 5), f"{L} get_local local # 0 value = 5"),
        ("global_", ("set_global", 1, 2.5), f"{L} set_global global # 1 value = 2.5"),
    ],
)
def test_record_layout(dispatcher, sink, loc, method, args, expected):
    getattr(dispatcher, method)(loc(), *args)
    assert sink.lines == [expected]


def test_branch_records(dispatcher, sink, loc):
    target = BranchTarget(label=1, location=loc(instr=0))
    dispatcher.br(loc(), target)
    dispatcher.br_if(loc(), target, 0)

    assert sink.lines == [
        f"{L} br, to label # 1 (== {{func: 0, instr: 0}})",
        f"{L} br_if, possibly to label # 1 (== {{func: 0, instr: 0}}), condition = 0",
    ]


def test_br_table_reports_out_of_range_index(dispatcher, sink, loc):
    table = [
        BranchTarget(label=0, location=loc(instr=1)),
        BranchTarget(label=1, location=loc(instr=2)),
    ]
    default = BranchTarget(label=2, location=loc(instr=5))

    dispatcher.br_table(loc(), table, default, 5)

    assert sink.lines == [
        f"{L} br_table, table = [{{label: 0, location: {{func: 0, instr: 1}}}}, "
        "{label: 1, location: {func: 0, instr: 2}}], "
        "default target = {label: 2, location: {func: 0, instr: 5}}, table index = 5"
    ]


def test_call_records(dispatcher, sink, loc):
    dispatcher.call(loc(), 7, False, [1, 2])
    dispatcher.call_result(loc(), [3])
    dispatcher.call(loc(), 0, True, [])

    assert sink.lines == [
        f"{L} direct call to func # 7 args = [1, 2]",
        f"{L} call result = [3]",
        f"{L} indirect call to func # 0 args = []",
    ]


def test_memory_records(dispatcher, sink, loc):
    memarg = MemArg(addr=16, offset=4, align=2)
    dispatcher.load(loc(), "i32.load", memarg, 99)
    dispatcher.store(loc(), "i64.store8", memarg, 255)
    dispatcher.grow_memory(loc(), 2, 10)

    assert sink.lines == [
        f"{L} i32.load value = 99 from = {{addr: 16, offset: 4, align: 2}}",
        f"{L} i64.store8 value = 255 to = {{addr: 16, offset: 4, align: 2}}",
        f"{L} grow_memory, delta (in pages) = 2 previous size (in pages) = 10",
    ]
    # no synthesized new size
    assert "12" not in sink.lines[-1]


def test_block_begin_end_render_same_location(dispatcher, sink, loc):
    dispatcher.begin(loc(instr=1), BlockType.LOOP)
    dispatcher.end(loc(instr=7), BlockType.LOOP, loc(instr=1))

    assert sink.lines == [
        "{func: 0, instr: 1} begin loop",
        "{func: 0, instr: 7} end, for begin loop @ {func: 0, instr: 1}",
    ]
    rendered_begin = sink.lines[0].split(" begin ")[0]
    assert sink.lines[1].endswith("@ " + rendered_begin)


def test_unmatched_end_is_rendered_as_is(dispatcher, sink, loc):
    dispatcher.end(loc(instr=9), "block", loc(instr=100))

    assert sink.lines == ["{func: 0, instr: 9} end, for begin block @ {func: 0, instr: 100}"]


def test_records_follow_call_order(dispatcher, sink, loc):
    dispatcher.const(loc(instr=0), 1)
    dispatcher.const(loc(instr=1), 2)
    dispatcher.binary(loc(instr=2), "i32.add", 1, 2, 3)
    dispatcher.drop(loc(instr=3))

    assert [line[: len("{func: 0, instr: N}")] for line in sink.lines] == [
        "{func: 0, instr: 0}",
        "{func: 0, instr: 1}",
        "{func: 0, instr: 2}",
        "{func: 0, instr: 3}",
    ]


def test_identical_calls_render_identically(dispatcher, sink, loc):
    for _ in range(2):
        dispatcher.call(loc(), 7, False, [1, 2])

    assert len(sink.lines) == 2
    assert sink.lines[0] == sink.lines[1]


def test_opaque_location_and_missing_values(dispatcher, sink):
    dispatcher.nop("module.wasm+0x2a")
    dispatcher.const("module.wasm+0x2b", None)
    dispatcher.return_("module.wasm+0x2c", (1.5, None))

    assert sink.lines == [
        "module.wasm+0x2a nop",
        "module.wasm+0x2b const, value = None",
        "module.wasm+0x2c return, values = [1.5, None]",
    ]


def test_branch_to_bare_label(dispatcher, sink):
    dispatcher.br("L0", 2)
    dispatcher.br_if("L1", 0, 1)

    assert sink.lines == [
        "L0 br, to label # 2 (== None)",
        "L1 br_if, possibly to label # 0 (== None), condition = 1",
    ]


def test_arguments_are_not_mutated(dispatcher, loc):
    args = [1, 2]
    dispatcher.call(loc(), 7, False, args)
    assert args == [1, 2]


def test_methods_return_none(dispatcher, loc):
    assert dispatcher.nop(loc()) is None
    assert dispatcher.grow_memory(loc(), 1, 1) is None


def test_sink_failure_surfaces_to_caller(loc):
    stream = io.StringIO()
    stream.close()
    dispatcher = HookDispatcher(StreamSink(stream))

    with pytest.raises(SinkError):
        dispatcher.nop(loc())


def test_stream_sink_writes_lines(loc):
    stream = io.StringIO()
    dispatcher = HookDispatcher(StreamSink(stream))
    dispatcher.nop(loc())
    dispatcher.drop(loc())

    assert stream.getvalue() == f"{L} nop\n{L} drop\n"


def test_default_sink_is_stdout(capsys, loc):
    HookDispatcher().nop(loc())
    assert capsys.readouterr().out == f"{L} nop\n"


def test_concurrent_records_are_not_interleaved(loc):
    sink = MemorySink()
    dispatcher = HookDispatcher(sink)

    def worker(func):
        for i in range(200):
            dispatcher.const(Location(func=func, instr=i), func)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(sink.lines) == 800
    for func in range(4):
        mine = [line for line in sink.lines if line.startswith("{func: %d," % func)]
        assert mine == ["{func: %d, instr: %d} const, value = %d" % (func, i, func) for i in range(200)]


def test_invalid_pairing_mode():
    with pytest.raises(ValueError):
        HookDispatcher(MemorySink(), block_pairing="strict")


def test_value_parameters_use_the_value_alias():
    hints = typing.get_type_hints(HookDispatcher.binary)
    assert hints["first"] == Value
    assert hints["result"] == Value
    assert typing.get_type_hints(HookDispatcher.return_)["values"] == typing.Sequence[Value]
