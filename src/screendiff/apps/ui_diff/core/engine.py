"""Core execution engine for the UI difference checker."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image

from .config import DiffConfig
from .errors import AccessError, WriteError
from .extraction import parse_differences, parse_processed_dimensions
from .geometry import build_canonical_differences, compute_scale_factors
from .inference import Analyzer, SourceImage, create_analyzer, media_type_for
from .models import ComparisonResult
from .output import write_annotated_image, write_text_artifact
from .rendering import RenderStyle, load_raster, render_annotations

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedImage:
    """An input image as bytes for the service and as a decoded raster."""

    source: SourceImage
    raster: Image.Image


def load_image(path: Path) -> LoadedImage:
    """Read and decode one input image."""

    path = Path(path)
    if not path.is_file() or not os.access(path, os.R_OK):
        raise AccessError(path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise AccessError(path, str(exc)) from exc

    raster = load_raster(data, origin=path)
    width, height = raster.size
    source = SourceImage(
        path=path,
        data=data,
        width=width,
        height=height,
        media_type=media_type_for(raster.format),
    )
    return LoadedImage(source=source, raster=raster)


def load_image_pair(first: Path, second: Path) -> Tuple[LoadedImage, LoadedImage]:
    """Load both images concurrently; returns once both are ready."""

    with ThreadPoolExecutor(max_workers=2) as executor:
        futures = [executor.submit(load_image, path) for path in (first, second)]
        loaded = [future.result() for future in futures]
    return loaded[0], loaded[1]


class DifferenceEngine:
    """Coordinate loading, inference, parsing, rendering and output."""

    def __init__(self, config: DiffConfig, *, analyzer: Optional[Analyzer] = None) -> None:
        self.config = config
        self.style = RenderStyle(
            legend_height=config.legend_height, font_path=config.font_path
        )
        self._analyzer = analyzer

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def compare(self, first_path: Path, second_path: Path) -> ComparisonResult:
        """Run the full comparison of *first_path* against *second_path*."""

        first, second = load_image_pair(Path(first_path), Path(second_path))
        logger.info(
            "Processing images: %s & %s", first.source.path.name, second.source.path.name
        )

        text = self._ensure_analyzer().analyze(first.source, second.source)
        save_error: Optional[str] = None
        if self.config.save_raw_response:
            try:
                saved = write_text_artifact(
                    text, second.source.path, self.config.output_dir
                )
                logger.info("Raw response saved at: %s", saved)
            except WriteError as exc:
                logger.error("Could not save raw response: %s", exc)
                save_error = str(exc)

        result = self.process_response(text, second.source.path, second.raster)
        if save_error:
            result.error = "; ".join(filter(None, [save_error, result.error]))
        return result

    def annotate(self, target_path: Path, text: str) -> ComparisonResult:
        """Process a previously captured response against *target_path*."""

        target = load_image(Path(target_path))
        return self.process_response(text, target.source.path, target.raster)

    def process_response(
        self, text: str, target_path: Path, target_image: Image.Image
    ) -> ComparisonResult:
        """Turn the service reply into differences and an annotated image."""

        dimensions = parse_processed_dimensions(text)
        differences = parse_differences(text)
        logger.info(
            "Processed dimensions: %s",
            {name: dims.as_dict() for name, dims in dimensions.items()},
        )
        logger.info("Found %d differences", len(differences))

        result = ComparisonResult(
            analysis=text,
            processed_dimensions=dimensions,
            differences=differences,
        )
        if not differences:
            logger.info("No differences detected to highlight")
            return result

        width, height = target_image.size
        scale = compute_scale_factors(dimensions["image2"], width, height)
        canonical = build_canonical_differences(differences, scale, width, height)
        result.canonical_differences = canonical
        if not canonical:
            logger.warning("None of the %d differences can be drawn", len(differences))
            return result

        annotated = render_annotations(
            target_image, canonical, total=len(differences), style=self.style
        )
        try:
            result.highlighted_image_path = write_annotated_image(
                annotated, target_path, self.config.output_dir
            )
        except WriteError as exc:
            logger.error("Could not save highlighted image: %s", exc)
            result.error = str(exc)
        return result

    def close(self) -> None:
        if self._analyzer is not None:
            self._analyzer.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _ensure_analyzer(self) -> Analyzer:
        if self._analyzer is None:
            self._analyzer = create_analyzer(self.config)
        return self._analyzer
