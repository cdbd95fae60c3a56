from pathlib import Path

import pytest

from crnch.exceptions import UnsupportedMediaError
from crnch.models import MediaKind
from crnch.utils import default_output_path, detect_media_kind, format_size, parse_size


@pytest.mark.parametrize(
    "text, expected",
    [
        ("200k", 204_800),
        ("200K", 204_800),
        ("500kb", 512_000),
        ("1.5m", 1_572_864),
        ("2MB", 2_097_152),
        ("300", 307_200),
        (" 64k ", 65_536),
    ],
)
def test_parse_size(text, expected):
    assert parse_size(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "12gb", "-5k", "1.2.3m"])
def test_parse_size_rejects_garbage(text):
    assert parse_size(text) is None


def test_format_size():
    assert format_size(None) == "-"
    assert format_size(512) == "512 B"
    assert format_size(204_800) == "200.0 KB"
    assert format_size(2_097_152) == "2.00 MB"


@pytest.mark.parametrize(
    "name, kind",
    [("a.png", MediaKind.PNG), ("b.JPG", MediaKind.JPG), ("c.jpeg", MediaKind.JPG), ("d.pdf", MediaKind.PDF)],
)
def test_detect_media_kind(name, kind):
    assert detect_media_kind(name) is kind


def test_detect_media_kind_rejects_other_files():
    with pytest.raises(UnsupportedMediaError):
        detect_media_kind("notes.txt")
    with pytest.raises(UnsupportedMediaError):
        detect_media_kind("README")


def test_default_output_path():
    assert default_output_path(Path("/tmp/photos/Cat.JPG")) == Path("crnched_Cat.jpg")
