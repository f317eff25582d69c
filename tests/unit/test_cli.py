"""Tests for CLI commands and flags."""

import json
import struct

from typer.testing import CliRunner

from conftest import E_SHNUM_OFFSET
from revlift.cli.app import app

runner = CliRunner()


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "revlift" in result.output


def test_help_shows_all_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for cmd in ["targets", "sections", "symbols", "disasm", "blocks", "ir"]:
        assert cmd in result.output


def test_targets_command():
    result = runner.invoke(app, ["targets"])
    assert result.exit_code == 0
    assert "elf64-x86-64" in result.output


def test_sections_command(sample_elf):
    result = runner.invoke(app, ["sections", str(sample_elf)])
    assert result.exit_code == 0
    assert "*COM*" in result.output
    assert ".text" in result.output


def test_symbols_command_filters_by_section(sample_elf):
    result = runner.invoke(app, ["symbols", str(sample_elf), "--section", ".text"])
    assert result.exit_code == 0
    assert "main" in result.output
    assert "puts" not in result.output


def test_disasm_command(sample_elf):
    result = runner.invoke(app, ["disasm", str(sample_elf)])
    assert result.exit_code == 0
    assert "<main>" in result.output
    assert "xor" in result.output


def test_blocks_json(sample_elf, tmp_path):
    # Keep stderr quiet so the JSON can be parsed even when streams are mixed.
    config = tmp_path / "revlift.yaml"
    config.write_text("logging:\n  level: ERROR\n")
    result = runner.invoke(app, ["-C", str(config), "blocks", str(sample_elf), "--json"])
    assert result.exit_code == 0
    blocks = json.loads(result.stdout)
    assert [b["symbol"] for b in blocks] == ["main", "main", "helper", "helper"]


def test_ir_command(sample_elf):
    result = runner.invoke(app, ["ir", str(sample_elf)])
    assert result.exit_code == 0
    assert "cbranch" in result.output


def test_missing_binary_exits_nonzero(tmp_path):
    result = runner.invoke(app, ["sections", str(tmp_path / "missing.o")])
    assert result.exit_code == 1


def test_malformed_binary_exits_nonzero(make_elf):
    path = make_elf()
    data = bytearray(path.read_bytes())
    data[E_SHNUM_OFFSET:E_SHNUM_OFFSET + 2] = struct.pack("<H", 40)
    path.write_bytes(bytes(data))
    result = runner.invoke(app, ["sections", str(path)])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)


def test_bad_config_exits_nonzero(sample_elf, tmp_path):
    config = tmp_path / "revlift.yaml"
    config.write_text("disassembly:\n  syntax: masm\n")
    result = runner.invoke(app, ["-C", str(config), "sections", str(sample_elf)])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "bad config" in result.output
