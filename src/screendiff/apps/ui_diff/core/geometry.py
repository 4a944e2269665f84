"""Map the service's coordinate space onto the true image raster."""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from .errors import MalformedPayloadError
from .extraction import PROCESSED_DIMENSIONS_KEY
from .models import (
    BoundingBox,
    CanonicalDifference,
    ProcessedDimensions,
    RawDifference,
    ScaleFactors,
)

logger = logging.getLogger(__name__)


def compute_scale_factors(
    claimed: ProcessedDimensions, true_width: int, true_height: int
) -> ScaleFactors:
    """Return per-axis factors from the claimed canvas to the real image.

    Factors are left unrounded; rounding only happens when pixels are drawn.
    """

    if claimed.width <= 0 or claimed.height <= 0:
        raise MalformedPayloadError(
            PROCESSED_DIMENSIONS_KEY,
            "",
            f"claimed canvas {claimed.width}x{claimed.height} has no area",
        )
    return ScaleFactors(
        scale_x=true_width / claimed.width,
        scale_y=true_height / claimed.height,
    )


def _pin(value: float, upper: float) -> float:
    return min(max(value, 0.0), upper)


def _scale_axis(
    start: float, end: float, factor: float, limit: float
) -> Tuple[float, float]:
    low, high = sorted((start, end))
    scaled_low = max(0.0, low * factor)
    scaled_high = min(limit, high * factor)
    return _pin(scaled_low, limit), _pin(scaled_high, limit)


def map_box(
    box: BoundingBox, scale: ScaleFactors, width: int, height: int
) -> BoundingBox:
    """Scale *box* into raster space and clamp it to ``[0,W] x [0,H]``."""

    x1, x2 = _scale_axis(box.x1, box.x2, scale.scale_x, float(width))
    y1, y2 = _scale_axis(box.y1, box.y2, scale.scale_y, float(height))
    return BoundingBox(x1, y1, x2, y2)


def build_canonical_differences(
    differences: Sequence[RawDifference],
    scale: ScaleFactors,
    width: int,
    height: int,
) -> List[CanonicalDifference]:
    """Validate and scale each difference, preserving response order.

    Records without a usable ``highlight_area`` are skipped. Records whose box
    collapses to zero area after clamping are kept but marked non-renderable,
    so counts and descriptions stay complete.
    """

    canonical: List[CanonicalDifference] = []
    for diff in differences:
        if diff.highlight_area is None:
            logger.warning(
                "Difference #%d (%s) has no usable highlight_area; skipping",
                diff.position,
                diff.type or "unknown",
            )
            continue

        mapped = map_box(diff.highlight_area, scale, width, height)
        renderable = mapped.x2 > mapped.x1 and mapped.y2 > mapped.y1
        if not renderable:
            logger.info(
                "Difference #%d (%s) falls outside the %dx%d frame; not drawn",
                diff.position,
                diff.type or "unknown",
                width,
                height,
            )
        canonical.append(
            CanonicalDifference(
                index=diff.position,
                source=diff,
                highlight_area=mapped,
                renderable=renderable,
            )
        )
    return canonical
