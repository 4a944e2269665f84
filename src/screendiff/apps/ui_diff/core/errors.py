"""Error taxonomy for the difference engine.

Every error carries enough context (object name, raw payload, path) to be
diagnosed without repeating the inference call. None of them is retried.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class DifferenceEngineError(RuntimeError):
    """Base class for failures raised while processing a comparison."""


class AccessError(DifferenceEngineError):
    """A source image could not be read."""

    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = Path(path)
        self.reason = reason
        message = f"Cannot access image: {self.path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ExtractionError(DifferenceEngineError):
    """An expected fenced JSON block is missing from the response text."""

    def __init__(self, object_name: str, payload: str) -> None:
        self.object_name = object_name
        self.payload = payload
        super().__init__(f"Could not find {object_name} JSON block in the response")


class MalformedPayloadError(DifferenceEngineError):
    """A block was found but its content is unusable."""

    def __init__(self, object_name: str, payload: str, reason: str) -> None:
        self.object_name = object_name
        self.payload = payload
        self.reason = reason
        super().__init__(f"Malformed {object_name} payload: {reason}")


class ImageLoadError(DifferenceEngineError):
    """An image could not be decoded."""

    def __init__(self, path: Optional[Path], reason: str = "") -> None:
        self.path = Path(path) if path is not None else None
        self.reason = reason
        target = str(self.path) if self.path is not None else "<in-memory image>"
        message = f"Failed to decode image {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class WriteError(DifferenceEngineError):
    """An output artifact could not be persisted."""

    def __init__(
        self, path: Path, reason: str = "", *, artifact: str = "annotated image"
    ) -> None:
        self.path = Path(path)
        self.reason = reason
        self.artifact = artifact
        message = f"Failed to write {artifact} to {self.path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
