from pathlib import Path

import pytest
from typer.testing import CliRunner

from crnch import __version__
from crnch import config as cfg
from crnch import orchestrator
from crnch.cli import app
from crnch.cli import tools_commands
from crnch.dependencies import ToolStatus

from fakes import make_file

runner = CliRunner()


@pytest.fixture
def fake_toolchain(monkeypatch, patched_config_paths, png_tools, pdf_tools):
    tools = {**png_tools, **pdf_tools}
    monkeypatch.setattr(orchestrator, "build_toolset", lambda config=None: dict(tools))
    monkeypatch.setattr(
        orchestrator,
        "detect_tools",
        lambda executables=None: {name: ToolStatus(available=True, version="test") for name in executables},
    )
    monkeypatch.chdir(patched_config_paths)
    return tools


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_compress_png_to_target(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "photo.png", 2_400_000)
    out = tmp_path / "small.png"

    result = runner.invoke(app, ["compress", str(source), "-s", "200k", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert out.stat().st_size == 198_400
    assert "quality_search" in result.output
    assert fake_toolchain["magick-grayscale"].calls == []


def test_compress_default_output_name(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "Photo.png", 2_400_000)

    result = runner.invoke(app, ["compress", str(source), "--level", "low"])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "crnched_Photo.png").stat().st_size == 2_100_000


def test_nerd_mode_prints_attempts(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "photo.png", 2_400_000)

    result = runner.invoke(app, ["compress", str(source), "-s", "200k", "-o", str(tmp_path / "o.png"), "--nerd"])

    assert result.exit_code == 0, result.output
    assert "Attempts" in result.output
    assert "floor_probe" in result.output


def test_unreachable_pdf_warns_and_keeps_best(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "doc.pdf", 1_000_000)
    out = tmp_path / "doc-small.pdf"

    result = runner.invoke(app, ["compress", str(source), "-s", "48.828125", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert out.stat().st_size == 80_000
    assert "not reached" in result.output


def test_yes_accepts_grayscale_fallback(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "doc.pdf", 1_000_000)
    out = tmp_path / "doc-small.pdf"

    result = runner.invoke(app, ["compress", str(source), "-s", "48.828125", "-o", str(out), "-y"])

    assert result.exit_code == 0, result.output
    assert out.stat().st_size == 45_000
    assert "grayscale" in result.output


def test_invalid_size(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "photo.png", 1000)
    result = runner.invoke(app, ["compress", str(source), "-s", "huge"])
    assert result.exit_code == 1
    assert "invalid size" in result.output


def test_unsupported_file(fake_toolchain, tmp_path):
    source = tmp_path / "notes.txt"
    source.write_text("hello")
    result = runner.invoke(app, ["compress", str(source), "-s", "1k"])
    assert result.exit_code == 1
    assert "Unsupported file type" in result.output


def test_missing_tools_is_an_error(fake_toolchain, monkeypatch, tmp_path):
    monkeypatch.setattr(
        orchestrator,
        "detect_tools",
        lambda executables=None: {name: ToolStatus(available=False) for name in executables},
    )
    source = make_file(tmp_path / "photo.png", 2_400_000)

    result = runner.invoke(app, ["compress", str(source), "-s", "200k", "-o", str(tmp_path / "o.png")])

    assert result.exit_code == 1
    assert "no tool available" in result.output
    assert not (tmp_path / "o.png").exists()


def test_config_set_and_show(patched_config_paths: Path):
    result = runner.invoke(app, ["config", "set", "tolerance", "0.02"])
    assert result.exit_code == 0, result.output
    assert "Successfully set" in result.output

    show = runner.invoke(app, ["config", "show", "--key", "tolerance"])
    assert show.exit_code == 0
    assert "0.02" in show.output

    bad = runner.invoke(app, ["config", "set", "tolerance", "3"])
    assert bad.exit_code == 1

    unknown = runner.invoke(app, ["config", "show", "--key", "colour"])
    assert unknown.exit_code == 1
    assert "default_level" in unknown.output


def test_config_show_all(patched_config_paths: Path):
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    for key in cfg.DEFAULT_CONFIG:
        assert key in result.output


def test_tools_command(monkeypatch, patched_config_paths):
    def fake_detect(executables=None):
        return {
            name: ToolStatus(available=name != "gs", version=f"{name} 1.0" if name != "gs" else None)
            for name in executables
        }

    monkeypatch.setattr(tools_commands, "detect_tools", fake_detect)

    result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0, result.output
    assert "pngquant" in result.output
    assert "missing" in result.output
    assert "Missing: gs" in result.output


def test_unwritable_output_is_reported_without_traceback(fake_toolchain, monkeypatch, tmp_path):
    def read_only(source, destination):
        raise OSError(30, "Read-only file system", str(destination))

    monkeypatch.setattr(orchestrator, "write_output", read_only)
    source = make_file(tmp_path / "photo.png", 2_400_000)

    result = runner.invoke(app, ["compress", str(source), "-s", "200k", "-o", str(tmp_path / "o.png")])

    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "Read-only file system" in result.output
    assert not isinstance(result.exception, OSError)


def test_nerd_mode_flags_attempts_that_meet_the_target(fake_toolchain, tmp_path):
    source = make_file(tmp_path / "photo.png", 2_400_000)

    result = runner.invoke(app, ["compress", str(source), "-s", "200k", "-o", str(tmp_path / "o.png"), "-v"])

    assert result.exit_code == 0, result.output
    assert "meets target" in result.output
