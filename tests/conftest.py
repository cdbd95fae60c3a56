import sys
from pathlib import Path
from typing import Dict

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from crnch import config as cfg  # noqa: E402

from fakes import ScriptedTool  # noqa: E402


@pytest.fixture
def png_tools() -> Dict[str, ScriptedTool]:
    def oxipng(parameter, options, source):
        return min(source.stat().st_size, 2_100_000)

    def pngquant(parameter, options, source):
        if "quality_min" in options:
            return 450_000
        return max(3200 * parameter, 5000)

    def grayscale(parameter, options, source):
        return source.stat().st_size // 2

    def resize(parameter, options, source):
        return max(source.stat().st_size * parameter // 100, 1)

    return {
        "oxipng": ScriptedTool("oxipng", "oxipng", oxipng),
        "pngquant": ScriptedTool(
            "pngquant", "pngquant", pngquant, domain=(0, 100), requires_parameter=True
        ),
        "magick-grayscale": ScriptedTool("magick-grayscale", "magick", grayscale),
        "magick-resize": ScriptedTool(
            "magick-resize", "magick", resize, domain=(1, 100), requires_parameter=True
        ),
    }


@pytest.fixture
def pdf_tools() -> Dict[str, ScriptedTool]:
    def gs(parameter, options, source):
        if options.get("grayscale"):
            return 45_000
        if parameter is not None:
            return 1000 * parameter
        if options.get("preset") == "/screen":
            return 80_000
        return 400_000

    return {"gs": ScriptedTool("gs", "gs", gs, domain=(1, 2400))}


@pytest.fixture
def jpg_tools() -> Dict[str, ScriptedTool]:
    def jpegoptim(parameter, options, source):
        return source.stat().st_size * 9 // 10

    def quality(parameter, options, source):
        return 2000 * parameter

    return {
        "jpegoptim": ScriptedTool("jpegoptim", "jpegoptim", jpegoptim),
        "magick-quality": ScriptedTool(
            "magick-quality", "magick", quality, domain=(1, 100), requires_parameter=True
        ),
    }


@pytest.fixture
def patched_config_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    user_dir = tmp_path / "user"
    local_file = tmp_path / ".crnch.yaml"

    monkeypatch.setattr(cfg, "USER_CONFIG_DIR", user_dir)
    monkeypatch.setattr(cfg, "USER_CONFIG_PATH", user_dir / "config.yaml")
    monkeypatch.setattr(cfg, "LOCAL_CONFIG_PATH", local_file)
    monkeypatch.setattr(
        cfg, "SOURCE_USER_CONFIG", f"user global config file ({user_dir / 'config.yaml'})"
    )
    monkeypatch.setattr(cfg, "SOURCE_LOCAL_CONFIG", f"local project config file ({local_file})")

    for key in cfg.DEFAULT_CONFIG:
        monkeypatch.delenv(cfg.ENV_VAR_PREFIX + key.upper(), raising=False)
    return tmp_path
