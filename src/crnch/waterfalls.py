from __future__ import annotations

"""Per-format stage lists.

Ordinary stages run in order until one meets the target. Fallback stage sets
are only appended when the escalation policy chooses a retry.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple

from .models import CompressionJob, CompressionLevel, EscalationDecision, MediaKind
from .search import Direction
from .stages import DirectTransform, SearchBackedTransform, Stage

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from .pipeline import StageContext

_PNG = frozenset({MediaKind.PNG})
_JPG = frozenset({MediaKind.JPG})
_PDF = frozenset({MediaKind.PDF})

# pngquant quality range per level for the fixed quantization pass.
PNG_QUANT_RANGE: Mapping[CompressionLevel, Tuple[int, int]] = {
    CompressionLevel.LOW: (80, 100),
    CompressionLevel.MEDIUM: (65, 90),
    CompressionLevel.HIGH: (30, 70),
}

JPG_LEVEL_QUALITY: Mapping[CompressionLevel, int] = {
    CompressionLevel.LOW: 85,
    CompressionLevel.MEDIUM: 75,
    CompressionLevel.HIGH: 50,
}

PDF_LEVEL_PRESET: Mapping[CompressionLevel, str] = {
    CompressionLevel.LOW: "/printer",
    CompressionLevel.MEDIUM: "/ebook",
    CompressionLevel.HIGH: "/screen",
}

PDF_FLOOR_PRESET = "/screen"
PDF_DPI_LIMITS = (1, 2400)


def pdf_dpi_domain(original_size: int, target: Optional[int]) -> Tuple[int, int]:
    """DPI range to search, narrowed by how hard the target squeezes the file."""
    ratio = original_size / target if target else 1.0
    if ratio > 10.0:
        lo, hi = 50, 150
    elif ratio > 3.0:
        lo, hi = 72, 250
    elif ratio > 2.0:
        lo, hi = 100, 400
    else:
        lo, hi = 150, 600
    return max(lo, PDF_DPI_LIMITS[0]), min(hi, PDF_DPI_LIMITS[1])


def _png_quant_max(ctx: "StageContext") -> int:
    return PNG_QUANT_RANGE[ctx.job.level][1]


def _png_quant_options(ctx: "StageContext") -> dict:
    return {"quality_min": PNG_QUANT_RANGE[ctx.job.level][0]}


def _jpg_level_quality(ctx: "StageContext") -> int:
    return JPG_LEVEL_QUALITY[ctx.job.level]


def _jpg_extent_options(ctx: "StageContext") -> dict:
    return {"extent_bytes": ctx.target}


def _pdf_level_options(ctx: "StageContext") -> dict:
    return {"preset": PDF_LEVEL_PRESET[ctx.job.level]}


def _pdf_gray_level_options(ctx: "StageContext") -> dict:
    return {"preset": PDF_LEVEL_PRESET[ctx.job.level], "grayscale": True}


def _pdf_dpi_domain(ctx: "StageContext") -> Tuple[int, int]:
    return pdf_dpi_domain(ctx.original_size, ctx.target)


@dataclass(frozen=True)
class Waterfall:
    kind: MediaKind
    stages: Tuple[Stage, ...]
    fallbacks: Mapping[EscalationDecision, Tuple[Stage, ...]] = field(default_factory=dict)
    # Stage probed at its most aggressive setting to estimate the floor.
    floor_stage: Optional[str] = None

    def eligible_stages(self, job: CompressionJob) -> List[Stage]:
        return [s for s in self.stages if s.eligible(job.has_target, job.level)]

    def all_stages(self) -> List[Stage]:
        stages = list(self.stages)
        for fallback in self.fallbacks.values():
            stages.extend(fallback)
        return stages

    def stage(self, name: str) -> Stage:
        for s in self.all_stages():
            if s.name == name:
                return s
        raise KeyError(name)


PNG_WATERFALL = Waterfall(
    kind=MediaKind.PNG,
    stages=(
        DirectTransform("lossless", _PNG, "oxipng"),
        DirectTransform(
            "quantize",
            _PNG,
            "pngquant",
            sources=("lossless", "input"),
            levels=frozenset({CompressionLevel.MEDIUM, CompressionLevel.HIGH}),
            parameter=_png_quant_max,
            options=_png_quant_options,
            polish="oxipng",
        ),
        SearchBackedTransform(
            "quality_search",
            _PNG,
            "pngquant",
            sources=("lossless", "input"),
            domain=(0, 100),
            direction=Direction.INCREASING,
            polish="oxipng",
        ),
    ),
    fallbacks={
        EscalationDecision.GRAYSCALE_RETRY: (
            DirectTransform(
                "grayscale",
                _PNG,
                "magick-grayscale",
                sources=("lossless", "input"),
                target_only=True,
                polish="oxipng",
            ),
            SearchBackedTransform(
                "grayscale_quality_search",
                _PNG,
                "pngquant",
                sources=("grayscale",),
                domain=(0, 100),
                direction=Direction.INCREASING,
                polish="oxipng",
            ),
        ),
        EscalationDecision.RESIZE_RETRY: (
            SearchBackedTransform(
                "resize",
                _PNG,
                "magick-resize",
                sources=("grayscale", "lossless", "input"),
                domain=(1, 100),
                direction=Direction.INCREASING,
                polish="oxipng",
            ),
        ),
    },
    floor_stage="quality_search",
)

JPG_WATERFALL = Waterfall(
    kind=MediaKind.JPG,
    stages=(
        DirectTransform("lossless", _JPG, "jpegoptim"),
        DirectTransform(
            "fixed_quality",
            _JPG,
            "magick-quality",
            sources=("lossless", "input"),
            level_only=True,
            parameter=_jpg_level_quality,
        ),
        SearchBackedTransform(
            "quality_search",
            _JPG,
            "magick-quality",
            sources=("lossless", "input"),
            domain=(1, 100),
            direction=Direction.INCREASING,
        ),
    ),
    fallbacks={
        EscalationDecision.GRAYSCALE_RETRY: (
            DirectTransform(
                "grayscale",
                _JPG,
                "magick-grayscale",
                sources=("lossless", "input"),
                target_only=True,
            ),
            SearchBackedTransform(
                "grayscale_quality_search",
                _JPG,
                "magick-quality",
                sources=("grayscale",),
                domain=(1, 100),
                direction=Direction.INCREASING,
            ),
        ),
        EscalationDecision.RESIZE_RETRY: (
            SearchBackedTransform(
                "resize_with_extent",
                _JPG,
                "magick-resize",
                sources=("grayscale", "lossless", "input"),
                domain=(1, 100),
                direction=Direction.INCREASING,
                options=_jpg_extent_options,
            ),
        ),
    },
    floor_stage="quality_search",
)

PDF_WATERFALL = Waterfall(
    kind=MediaKind.PDF,
    stages=(
        DirectTransform("standard_preset", _PDF, "gs", options=_pdf_level_options),
        SearchBackedTransform(
            "dpi_search",
            _PDF,
            "gs",
            domain=_pdf_dpi_domain,
            direction=Direction.INCREASING,
        ),
        DirectTransform(
            "floor_preset",
            _PDF,
            "gs",
            target_only=True,
            options=lambda ctx: {"preset": PDF_FLOOR_PRESET},
        ),
    ),
    fallbacks={
        EscalationDecision.GRAYSCALE_RETRY: (
            DirectTransform(
                "grayscale",
                _PDF,
                "gs",
                target_only=True,
                options=_pdf_gray_level_options,
            ),
            SearchBackedTransform(
                "grayscale_dpi_search",
                _PDF,
                "gs",
                sources=("grayscale",),
                domain=_pdf_dpi_domain,
                direction=Direction.INCREASING,
                options=lambda ctx: {"grayscale": True},
            ),
        ),
    },
    floor_stage="floor_preset",
)

_WATERFALLS: Dict[MediaKind, Waterfall] = {
    MediaKind.PNG: PNG_WATERFALL,
    MediaKind.JPG: JPG_WATERFALL,
    MediaKind.PDF: PDF_WATERFALL,
}


def get_waterfall(kind: MediaKind) -> Waterfall:
    return _WATERFALLS[MediaKind(kind)]


def register_waterfall(waterfall: Waterfall) -> None:
    """Replace the stage list used for ``waterfall.kind``."""
    _WATERFALLS[waterfall.kind] = waterfall


__all__ = [
    "Waterfall",
    "PNG_WATERFALL",
    "JPG_WATERFALL",
    "PDF_WATERFALL",
    "PNG_QUANT_RANGE",
    "JPG_LEVEL_QUALITY",
    "PDF_LEVEL_PRESET",
    "pdf_dpi_domain",
    "get_waterfall",
    "register_waterfall",
]
