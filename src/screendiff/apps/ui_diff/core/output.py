"""Persist annotated images under collision-free names."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from PIL import Image

from .errors import WriteError

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 1000
RAW_RESPONSE_ARTIFACT = "raw response"


def ensure_output_dir(output_dir: Path, *, artifact: str = "annotated image") -> Path:
    """Create *output_dir* if needed and return it resolved."""

    target = Path(output_dir).expanduser()
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteError(target, str(exc), artifact=artifact) from exc
    return target.resolve()


def filename_timestamp(now: Optional[datetime] = None) -> str:
    """Full-precision UTC timestamp with ``:`` and ``.`` made filename-safe."""

    moment = now or datetime.now(timezone.utc)
    stamp = moment.isoformat(timespec="microseconds")
    return stamp.replace(":", "-").replace(".", "-")


def build_output_filename(
    source: Path, now: Optional[datetime] = None, *, prefix: str = "diff", suffix: str = ".png"
) -> str:
    return f"{prefix}_{Path(source).stem}_{filename_timestamp(now)}{suffix}"


def _reserve(directory: Path, filename: str, artifact: str = "annotated image"):
    """Open a fresh file in *directory*, adding ``-N`` on name clashes."""

    stem, dot, extension = filename.rpartition(".")
    for attempt in range(MAX_NAME_ATTEMPTS):
        name = filename if attempt == 0 else f"{stem}-{attempt}{dot}{extension}"
        candidate = directory / name
        try:
            return candidate, candidate.open("xb")
        except FileExistsError:
            continue
    raise WriteError(directory / filename, "no free filename available", artifact=artifact)


def write_annotated_image(
    image: Image.Image,
    source: Path,
    output_dir: Path,
    *,
    now: Optional[datetime] = None,
) -> Path:
    """Save *image* as PNG next to its siblings and return the new path."""

    directory = ensure_output_dir(output_dir)
    filename = build_output_filename(source, now)
    try:
        path, handle = _reserve(directory, filename)
    except OSError as exc:
        raise WriteError(directory / filename, str(exc)) from exc

    try:
        with handle:
            image.save(handle, format="PNG")
    except (OSError, ValueError) as exc:
        path.unlink(missing_ok=True)
        raise WriteError(path, str(exc)) from exc

    logger.info("Highlighted image saved at: %s", path)
    return path


def write_text_artifact(
    text: str,
    source: Path,
    output_dir: Path,
    *,
    prefix: str = "response",
    now: Optional[datetime] = None,
) -> Path:
    """Save a raw model reply beside the images for later diagnosis."""

    directory = ensure_output_dir(output_dir, artifact=RAW_RESPONSE_ARTIFACT)
    filename = build_output_filename(source, now, prefix=prefix, suffix=".txt")
    try:
        path, handle = _reserve(directory, filename, RAW_RESPONSE_ARTIFACT)
        with handle:
            handle.write(text.encode("utf-8"))
    except OSError as exc:
        raise WriteError(
            directory / filename, str(exc), artifact=RAW_RESPONSE_ARTIFACT
        ) from exc
    return path
