import json
import subprocess
import sys

import pytest

from tracehooks import HookDispatcher, HookImports, MemorySink
from tracehooks.cli import iter_hook_calls, main, replay
from tracehooks.config import TraceConfig
from tracehooks.errors import ReplayError

CALLS = [
    {"hook": "begin_function", "args": [0, -1]},
    {"hook": "i32.const", "args": [0, 0, 5]},
    {"hook": "br_table", "args": [0, 1, 0, 5]},
    {"hook": "grow_memory", "args": [0, 2, 2, 10]},
    {"hook": "end_function", "args": [0, 3]},
]

EXPECTED = [
    "{func: 0, instr: -1} begin function",
    "{func: 0, instr: 0} const, value = 5",
    "{func: 0, instr: 1} br_table, table = [{label: 0, location: {func: 0, instr: 0}}], "
    "default target = {label: 1, location: None}, table index = 5",
    "{func: 0, instr: 2} grow_memory, delta (in pages) = 2 previous size (in pages) = 10",
    "{func: 0, instr: 3} end, for begin function @ {func: 0, instr: -1}",
]


@pytest.fixture
def call_log(tmp_path):
    path = tmp_path / "calls.jsonl"
    lines = ["# recorded hook calls", ""] + [json.dumps(call) for call in CALLS]
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def static_info(tmp_path):
    path = tmp_path / "module.info.json"
    path.write_text(json.dumps({"br_tables": [{"table": [{"label": 0, "location": 0}], "default": {"label": 1}}]}))
    return path


def test_replay_to_file(call_log, static_info, tmp_path):
    out = tmp_path / "out" / "trace.txt"

    rc = main(["-i", str(call_log), "-s", str(static_info), "--output-path", str(out)])

    assert rc == 0
    assert out.read_text().splitlines() == EXPECTED


def test_replay_to_stdout(call_log, static_info, capsys):
    rc = main(["-i", str(call_log), "-s", str(static_info)])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == EXPECTED


def test_replay_unknown_hook(tmp_path, capsys):
    path = tmp_path / "calls.jsonl"
    path.write_text(json.dumps({"hook": "i32.frobnicate", "args": [0, 0]}) + "\n")

    assert main(["-i", str(path)]) == 1
    assert capsys.readouterr().out == ""


def test_replay_block_pairing_raise(tmp_path, capsys):
    path = tmp_path / "calls.jsonl"
    path.write_text(json.dumps({"hook": "end_block", "args": [0, 4, 1]}) + "\n")

    assert main(["-i", str(path), "--checks-block-pairing", "raise"]) == 1
    # the mismatched record is still written
    assert capsys.readouterr().out == "{func: 0, instr: 4} end, for begin block @ {func: 0, instr: 1}\n"


@pytest.mark.parametrize("call", [
    {"hook": "nop", "args": [0]},
    {"hook": "nop", "args": ["f", 1]},
    {"hook": "i64.const", "args": [0, 1, "low", 0]},
])
def test_replay_bad_arguments(tmp_path, capsys, call):
    path = tmp_path / "calls.jsonl"
    path.write_text(json.dumps(call) + "\n")

    assert main(["-i", str(path)]) == 1
    assert capsys.readouterr().out == ""


def test_replay_bad_arguments_names_the_line(tmp_path):
    path = tmp_path / "calls.jsonl"
    path.write_text(json.dumps({"hook": "nop", "args": [0, 1]}) + "\n"
                    + json.dumps({"hook": "nop", "args": [0]}) + "\n")
    imports = HookImports(HookDispatcher(MemorySink()))

    with open(path) as f:
        with pytest.raises(ReplayError, match="Line 2: bad arguments for nop"):
            replay(f, imports)


def test_partial_config_file_is_layered_over_defaults(call_log, static_info, tmp_path, capsys):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"checks": {"block_pairing": "raise"}}))

    rc = main(["-i", str(call_log), "-s", str(static_info), "-c", str(cfg)])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == EXPECTED


def test_config_file_settings_are_applied(tmp_path, capsys):
    path = tmp_path / "calls.jsonl"
    path.write_text(json.dumps({"hook": "end_block", "args": [0, 4, 1]}) + "\n")
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"checks": {"block_pairing": "raise"}}))

    assert main(["-i", str(path), "-c", str(cfg)]) == 1


def test_missing_input(capsys):
    assert main([]) == 1


def test_bad_config_file(call_log, tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"config_version": 0.1, "output": {"colour": True}}))

    assert main(["-i", str(call_log), "-c", str(cfg)]) == 1


def test_iter_hook_calls_errors():
    with pytest.raises(ReplayError):
        list(iter_hook_calls(["{broken"]))
    with pytest.raises(ReplayError):
        list(iter_hook_calls(['{"args": []}']))
    with pytest.raises(ReplayError):
        list(iter_hook_calls(['{"hook": "nop", "args": 3}']))

    assert list(iter_hook_calls(['', '{"hook": "nop", "args": [0, 1]}'])) == [(2, "nop", [0, 1])]


def test_dump_default_config_flag(capsys):
    assert main(["--dump-default-config"]) == 0
    model = TraceConfig.model_validate(json.loads(capsys.readouterr().out))
    assert model == TraceConfig()


def test_dump_default_config_module_entrypoint():
    result = subprocess.run(
        [sys.executable, "-m", "tracehooks.cli", "--dump-default-config"],
        check=True,
        capture_output=True,
        text=True,
    )
    dumped = json.loads(result.stdout)
    model = TraceConfig.model_validate(dumped)

    assert model.output.path == "-"
    assert model.checks.block_pairing == "ignore"
