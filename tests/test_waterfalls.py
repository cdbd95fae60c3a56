from pathlib import Path

import pytest

from crnch.models import CompressionJob, CompressionLevel, EscalationDecision, MediaKind
from crnch.waterfalls import (
    JPG_WATERFALL,
    PDF_WATERFALL,
    PNG_WATERFALL,
    get_waterfall,
    pdf_dpi_domain,
)


def _names(waterfall, kind, **kwargs):
    job = CompressionJob(Path("in"), Path("out"), kind, **kwargs)
    return [stage.name for stage in waterfall.eligible_stages(job)]


def test_get_waterfall_by_kind():
    assert get_waterfall(MediaKind.PNG) is PNG_WATERFALL
    assert get_waterfall("pdf") is PDF_WATERFALL


def test_target_mode_uses_every_ordinary_stage_but_level_only_ones():
    assert _names(PNG_WATERFALL, MediaKind.PNG, target_bytes=1000) == ["lossless", "quantize", "quality_search"]
    assert _names(JPG_WATERFALL, MediaKind.JPG, target_bytes=1000) == ["lossless", "quality_search"]
    assert _names(PDF_WATERFALL, MediaKind.PDF, target_bytes=1000) == [
        "standard_preset",
        "dpi_search",
        "floor_preset",
    ]


@pytest.mark.parametrize(
    "level, expected",
    [
        (CompressionLevel.LOW, ["lossless"]),
        (CompressionLevel.MEDIUM, ["lossless", "quantize"]),
        (CompressionLevel.HIGH, ["lossless", "quantize"]),
    ],
)
def test_png_level_mode(level, expected):
    assert _names(PNG_WATERFALL, MediaKind.PNG, level=level) == expected


def test_level_mode_never_searches():
    for waterfall, kind in ((PNG_WATERFALL, MediaKind.PNG), (JPG_WATERFALL, MediaKind.JPG), (PDF_WATERFALL, MediaKind.PDF)):
        for level in CompressionLevel:
            job = CompressionJob(Path("in"), Path("out"), kind, level=level)
            assert not any(s.is_search_backed for s in waterfall.eligible_stages(job))
    assert _names(JPG_WATERFALL, MediaKind.JPG, level=CompressionLevel.HIGH) == ["lossless", "fixed_quality"]
    assert _names(PDF_WATERFALL, MediaKind.PDF, level=CompressionLevel.LOW) == ["standard_preset"]


def test_fallbacks():
    assert set(PNG_WATERFALL.fallbacks) == {EscalationDecision.GRAYSCALE_RETRY, EscalationDecision.RESIZE_RETRY}
    assert set(JPG_WATERFALL.fallbacks) == {EscalationDecision.GRAYSCALE_RETRY, EscalationDecision.RESIZE_RETRY}
    assert set(PDF_WATERFALL.fallbacks) == {EscalationDecision.GRAYSCALE_RETRY}
    assert PNG_WATERFALL.stage("grayscale_quality_search").sources == ("grayscale",)
    with pytest.raises(KeyError):
        PNG_WATERFALL.stage("nope")


@pytest.mark.parametrize(
    "original, target, expected",
    [
        (5_000_000, 100_000, (50, 150)),
        (1_000_000, 200_000, (72, 250)),
        (500_000, 200_000, (100, 400)),
        (300_000, 200_000, (150, 600)),
        (300_000, None, (150, 600)),
    ],
)
def test_pdf_dpi_domain(original, target, expected):
    assert pdf_dpi_domain(original, target) == expected


def test_search_floor_parameter_is_most_aggressive():
    stage = PNG_WATERFALL.stage("quality_search")
    assert stage.floor_parameter(None) == 0


def test_register_waterfall_replaces_stage_list(monkeypatch):
    from crnch import waterfalls

    monkeypatch.setattr(waterfalls, "_WATERFALLS", dict(waterfalls._WATERFALLS))
    custom = waterfalls.Waterfall(kind=MediaKind.PDF, stages=PDF_WATERFALL.stages[:1])
    waterfalls.register_waterfall(custom)

    assert get_waterfall(MediaKind.PDF) is custom
    assert _names(custom, MediaKind.PDF, target_bytes=1000) == ["standard_preset"]
