import importlib.util
import sys
import uuid
from pathlib import Path

import pytest


def _load_cli_module():
    """Load the top-level virsh.py under a unique name so the package import is unaffected."""
    cli_path = Path(__file__).resolve().parents[1] / "virsh.py"
    mod_name = f"virsh_cli_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(cli_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod


def _feed(cli, monkeypatch, lines):
    """Replace the prompt reader with one that echoes the prompt and returns `lines` in order."""
    it = iter(lines)

    async def fake_ainput(prompt: str) -> str:
        sys.stdout.write(prompt)
        return next(it)
    monkeypatch.setattr(cli, "ainput", fake_ainput)


@pytest.mark.asyncio
async def test_repl_banner_and_exit(monkeypatch, capsys):
    cli = _load_cli_module()
    _feed(cli, monkeypatch, ["exit\n"])

    assert await cli.main([]) == 0
    out = capsys.readouterr().out
    assert "virsh REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out


@pytest.mark.asyncio
async def test_repl_prints_side_effects_and_values(monkeypatch, capsys):
    cli = _load_cli_module()
    _feed(cli, monkeypatch, [
        "print 'hello from virsh'\n",
        "1 + 2\n",
        "person = {name: 'Kim'}\n",
        "exit\n",
    ])

    await cli.main([])
    out, err = capsys.readouterr()
    assert ">> hello from virsh\n" in out
    assert ">> 3\n" in out
    assert ">> {name: 'Kim'}\n" in out
    assert err == ""


@pytest.mark.asyncio
async def test_repl_keeps_bindings_and_skips_blank_lines(monkeypatch, capsys):
    cli = _load_cli_module()
    _feed(cli, monkeypatch, ["x = 40\n", "\n", "x + 2\n", "exit\n"])

    await cli.main([])
    out = capsys.readouterr().out
    assert ">> 42\n" in out


@pytest.mark.asyncio
async def test_repl_continues_open_blocks(monkeypatch, capsys):
    cli = _load_cli_module()
    _feed(cli, monkeypatch, ["total = 0;\n", "for i <- 1..3 {\n", "total = total + i\n", "}; total\n", "exit\n"])

    await cli.main([])
    out = capsys.readouterr().out
    assert ".. " in out
    assert ".. 6\n" in out


@pytest.mark.asyncio
async def test_repl_errors_go_to_stderr_and_session_continues(monkeypatch, capsys):
    cli = _load_cli_module()
    _feed(cli, monkeypatch, ["1 + 'a'\n", "a = ]\n", "'still here'\n", "exit\n"])

    await cli.main([])
    out, err = capsys.readouterr()
    assert "TypeMismatch" in err
    assert "ParseFailure" in err
    assert "'still here'" in out


@pytest.mark.asyncio
async def test_repl_eof_exits(monkeypatch, capsys):
    cli = _load_cli_module()
    _feed(cli, monkeypatch, [""])

    assert await cli.main([]) == 0
    assert "Exiting." in capsys.readouterr().out


@pytest.mark.asyncio
async def test_script_file_runs_with_its_directory_as_base(tmp_path, capsys):
    cli = _load_cli_module()
    (tmp_path / "data.txt").write_text("a\nb\n", encoding="utf-8")
    script = tmp_path / "count.vsh"
    script.write_text("n = 0;\nfor l <- (fs.lines 'data.txt') { n++ };\nwrite 'lines: ';\nn\n", encoding="utf-8")

    assert await cli.main([str(script)]) == 0
    assert capsys.readouterr().out == "lines: 2\n"


@pytest.mark.asyncio
async def test_script_file_error_exits_nonzero(tmp_path, capsys):
    cli = _load_cli_module()
    script = tmp_path / "bad.vsh"
    script.write_text("x = 1;\nx->y", encoding="utf-8")

    assert await cli.main([str(script)]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error on line 2, col 1: TypeMismatch")
    assert err.count("line 2") == 1


@pytest.mark.asyncio
async def test_missing_script_file(tmp_path, capsys):
    cli = _load_cli_module()
    assert await cli.main([str(tmp_path / "nope.vsh")]) == 2
    assert "no such script" in capsys.readouterr().err


def test_incomplete_input_detection():
    cli = _load_cli_module()
    assert cli.incomplete("f = x => {")
    assert cli.incomplete("(1, 2")
    assert not cli.incomplete("1 + 2")
    assert not cli.incomplete("a = ]")
