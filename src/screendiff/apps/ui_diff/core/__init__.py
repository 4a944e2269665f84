"""UI difference checker core.

Turns a multimodal model's free-text comparison of two screenshots into
structured difference records and a colour-coded, labelled overlay image.
"""

from .config import DiffConfig, DiffSettings, build_runtime_config, load_config
from .engine import DifferenceEngine, load_image, load_image_pair
from .errors import (
    AccessError,
    DifferenceEngineError,
    ExtractionError,
    ImageLoadError,
    MalformedPayloadError,
    WriteError,
)
from .extraction import extract_json_object, parse_differences, parse_processed_dimensions
from .geometry import build_canonical_differences, compute_scale_factors
from .models import (
    BoundingBox,
    CanonicalDifference,
    ComparisonResult,
    ProcessedDimensions,
    RawDifference,
    ScaleFactors,
)
from .output import write_annotated_image
from .rendering import render_annotations

__all__ = [
    "AccessError",
    "BoundingBox",
    "CanonicalDifference",
    "ComparisonResult",
    "DiffConfig",
    "DiffSettings",
    "DifferenceEngine",
    "DifferenceEngineError",
    "ExtractionError",
    "ImageLoadError",
    "MalformedPayloadError",
    "ProcessedDimensions",
    "RawDifference",
    "ScaleFactors",
    "WriteError",
    "build_canonical_differences",
    "build_runtime_config",
    "compute_scale_factors",
    "extract_json_object",
    "load_config",
    "load_image",
    "load_image_pair",
    "parse_differences",
    "parse_processed_dimensions",
    "render_annotations",
    "write_annotated_image",
]
