"""Data models for UI difference analysis."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

KNOWN_DIFFERENCE_TYPES = (
    "text_change",
    "layout_change",
    "element_added",
    "element_removed",
    "style_change",
)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class ProcessedDimensions:
    """Canvas size the inference service says it analysed."""

    width: int
    height: int

    def as_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in some pixel space."""

    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_mapping(cls, value: object) -> Optional["BoundingBox"]:
        """Build a box from ``{"x1":..,"y1":..,"x2":..,"y2":..}``.

        Returns None when the mapping is missing, incomplete, or holds
        anything other than finite numbers.
        """

        if not isinstance(value, Mapping):
            return None
        coords = []
        for key in ("x1", "y1", "x2", "y2"):
            raw = value.get(key)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                return None
            number = float(raw)
            if not math.isfinite(number):
                return None
            coords.append(number)
        return cls(*coords)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def as_dict(self) -> Dict[str, float]:
        return {"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}


@dataclass(frozen=True)
class RawDifference:
    """One unvalidated difference claim, as reported by the service."""

    position: int  # 1-based order in the response
    type: str
    location: str = ""
    description: str = ""
    coordinates: Optional[BoundingBox] = None
    highlight_area: Optional[BoundingBox] = None
    before: Optional[str] = None
    after: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, position: int, entry: Mapping[str, Any]) -> "RawDifference":
        return cls(
            position=position,
            type=str(entry.get("type") or ""),
            location=str(entry.get("location") or ""),
            description=str(entry.get("description") or ""),
            coordinates=BoundingBox.from_mapping(entry.get("coordinates")),
            highlight_area=BoundingBox.from_mapping(entry.get("highlight_area")),
            before=_optional_text(entry.get("before")),
            after=_optional_text(entry.get("after")),
            raw=dict(entry),
        )

    def to_json(self) -> Dict[str, Any]:
        return dict(self.raw)


@dataclass(frozen=True)
class ScaleFactors:
    """Multipliers from the service's canvas to true raster pixels."""

    scale_x: float
    scale_y: float


@dataclass(frozen=True)
class CanonicalDifference:
    """A difference whose highlight box has been scaled and clamped."""

    index: int  # label drawn on the overlay
    source: RawDifference
    highlight_area: BoundingBox
    renderable: bool

    @property
    def type(self) -> str:
        return self.source.type

    @property
    def description(self) -> str:
        return self.source.description

    def as_dict(self) -> Dict[str, object]:
        return {
            "index": self.index,
            "type": self.type,
            "location": self.source.location,
            "description": self.description,
            "highlight_area": self.highlight_area.as_dict(),
            "renderable": self.renderable,
        }


@dataclass
class ComparisonResult:
    """Everything produced by one comparison."""

    analysis: str
    processed_dimensions: Dict[str, ProcessedDimensions] = field(default_factory=dict)
    differences: List[RawDifference] = field(default_factory=list)
    canonical_differences: List[CanonicalDifference] = field(default_factory=list)
    highlighted_image_path: Optional[Path] = None
    timestamp: str = field(default_factory=_utc_timestamp)
    error: Optional[str] = None

    @property
    def has_artifact(self) -> bool:
        return self.highlighted_image_path is not None

    def to_json(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "analysis": self.analysis,
            "differences": [diff.to_json() for diff in self.differences],
            "highlightedImagePath": (
                str(self.highlighted_image_path)
                if self.highlighted_image_path is not None
                else None
            ),
            "processedDimensions": {
                name: dims.as_dict() for name, dims in self.processed_dimensions.items()
            },
            "timestamp": self.timestamp,
        }
        if self.error:
            payload["error"] = self.error
        return payload
