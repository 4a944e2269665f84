"""Draw labelled, colour-coded difference boxes onto a copy of an image."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

from PIL import Image, ImageDraw, ImageFont

from .errors import ImageLoadError
from .models import BoundingBox, CanonicalDifference

logger = logging.getLogger(__name__)

RGBA = Tuple[int, int, int, int]

LEGEND_HEIGHT = 40
STROKE_ALPHA = 204  # 0.8 opacity
FILL_ALPHA = 77  # 0.3 opacity


@dataclass(frozen=True)
class ColorScheme:
    stroke: RGBA
    fill: RGBA


def _scheme(red: int, green: int, blue: int) -> ColorScheme:
    return ColorScheme(
        stroke=(red, green, blue, STROKE_ALPHA),
        fill=(red, green, blue, FILL_ALPHA),
    )


DEFAULT_SCHEME = _scheme(255, 0, 0)

PALETTE: Dict[str, ColorScheme] = {
    "text_change": _scheme(255, 0, 0),
    "layout_change": _scheme(0, 0, 255),
    "element_added": _scheme(0, 128, 0),
    "element_removed": _scheme(255, 165, 0),
    "style_change": _scheme(128, 0, 128),
}


def color_scheme_for(diff_type: str) -> ColorScheme:
    """Palette entry for *diff_type*; unknown types share the red default."""

    return PALETTE.get(diff_type, DEFAULT_SCHEME)


@dataclass(frozen=True)
class RenderStyle:
    """Layout constants for the overlay."""

    legend_height: int = LEGEND_HEIGHT
    legend_margin: int = 20
    legend_text_offset: int = 13
    legend_background: RGBA = (255, 255, 255, 230)
    legend_text_color: RGBA = (0, 0, 0, 255)
    legend_font_size: int = 14
    label_font_size: int = 12
    label_inset: Tuple[int, int] = (5, 3)
    label_fill: RGBA = (255, 255, 255, 255)
    label_outline: RGBA = (0, 0, 0, 255)
    label_outline_width: int = 2
    box_line_width: int = 3
    font_path: Optional[Path] = None


DEFAULT_STYLE = RenderStyle()


def load_raster(
    source: Union[Path, str, bytes], *, origin: Optional[Path] = None
) -> Image.Image:
    """Decode an image from a path or raw bytes, fully loading its pixels.

    *origin* names the file raw bytes came from, for error messages.
    """

    path = origin if isinstance(source, bytes) else Path(source)
    try:
        handle = io.BytesIO(source) if isinstance(source, bytes) else path
        with Image.open(handle) as image:
            image.load()
            decoded = image.copy()
            decoded.format = image.format
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageLoadError(path, str(exc)) from exc
    return decoded


def _load_font(size: int, font_path: Optional[Path]):
    if font_path is not None:
        try:
            return ImageFont.truetype(str(font_path), size)
        except OSError as exc:
            logger.warning(
                "Could not load font %s (%s); using built-in font", font_path, exc
            )
    return ImageFont.load_default(size=size)


def _pixel_box(box: BoundingBox, width: int, height: int) -> Tuple[int, int, int, int]:
    """Inclusive pixel rectangle for *box*, at least one pixel, inside the frame."""

    left = min(round(box.x1), width - 1)
    top = min(round(box.y1), height - 1)
    right = min(max(round(box.x2), left + 1), width)
    bottom = min(max(round(box.y2), top + 1), height)
    return left, top, right - 1, bottom - 1


class PillowCanvas:
    """Output raster: the source on top, the legend band underneath."""

    def __init__(self, image: Image.Image, style: RenderStyle) -> None:
        self.style = style
        self.width, self.height = image.size
        self._image = Image.new(
            "RGBA", (self.width, self.height + style.legend_height), (0, 0, 0, 0)
        )
        self._image.paste(image.convert("RGBA"), (0, 0))
        self._legend_font = _load_font(style.legend_font_size, style.font_path)
        self._label_font = _load_font(style.label_font_size, style.font_path)

    def _composite(self, paint: Callable[[ImageDraw.ImageDraw], None]) -> None:
        layer = Image.new("RGBA", self._image.size, (0, 0, 0, 0))
        paint(ImageDraw.Draw(layer))
        self._image = Image.alpha_composite(self._image, layer)

    def _composite_in_frame(self, paint: Callable[[ImageDraw.ImageDraw], None]) -> None:
        # source area only
        layer = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))
        paint(ImageDraw.Draw(layer))
        self._image.alpha_composite(layer, (0, 0))

    def fill_legend(self) -> None:
        top = self.height
        bottom = self.height + self.style.legend_height - 1
        self._composite(
            lambda draw: draw.rectangle(
                (0, top, self.width - 1, bottom), fill=self.style.legend_background
            )
        )

    def draw_legend_text(self, text: str) -> None:
        position = (
            self.style.legend_margin,
            self.height + self.style.legend_text_offset,
        )
        self._composite(
            lambda draw: draw.text(
                position,
                text,
                font=self._legend_font,
                fill=self.style.legend_text_color,
            )
        )

    def draw_box(self, box: BoundingBox, scheme: ColorScheme) -> None:
        xy = _pixel_box(box, self.width, self.height)
        # outline first, fill blended over it
        self._composite_in_frame(
            lambda draw: draw.rectangle(
                xy, outline=scheme.stroke, width=self.style.box_line_width
            )
        )
        self._composite_in_frame(lambda draw: draw.rectangle(xy, fill=scheme.fill))

    def draw_label(self, text: str, box: BoundingBox) -> None:
        inset_x, inset_y = self.style.label_inset
        position = (round(box.x1) + inset_x, round(box.y1) + inset_y)
        self._composite_in_frame(
            lambda draw: draw.text(
                position,
                text,
                font=self._label_font,
                fill=self.style.label_fill,
                stroke_width=self.style.label_outline_width,
                stroke_fill=self.style.label_outline,
            )
        )

    def result(self) -> Image.Image:
        return self._image


def legend_text(total: int) -> str:
    return f"{total} UI differences detected"


def render_annotations(
    image: Image.Image,
    differences: Sequence[CanonicalDifference],
    *,
    total: Optional[int] = None,
    style: RenderStyle = DEFAULT_STYLE,
    canvas_factory: Callable[[Image.Image, RenderStyle], PillowCanvas] = PillowCanvas,
) -> Image.Image:
    """Return a new raster with every renderable difference highlighted.

    *total* is the count shown in the legend; it defaults to the number of
    differences passed in and should include records that were skipped
    upstream. The input image is left untouched.
    """

    canvas = canvas_factory(image, style)
    canvas.fill_legend()
    canvas.draw_legend_text(legend_text(len(differences) if total is None else total))

    for diff in differences:
        if not diff.renderable:
            continue
        canvas.draw_box(diff.highlight_area, color_scheme_for(diff.type))
        canvas.draw_label(str(diff.index), diff.highlight_area)
        logger.info(
            "Difference #%d (%s): %s", diff.index, diff.type, diff.description
        )

    return canvas.result()
