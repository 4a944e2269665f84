"""Ask the inference service to compare an image pair."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from screendiff.libs.vlm import (
    BaseBackendClient,
    ImageAttachment,
    create_backend_client,
)

from .config import DiffConfig
from .prompts import ComparisonPromptProfile, get_prompt_profile

logger = logging.getLogger(__name__)

_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


def media_type_for(image_format: Optional[str]) -> str:
    return _MEDIA_TYPES.get((image_format or "").upper(), "image/png")


@dataclass(frozen=True)
class SourceImage:
    """Raw bytes of an input image plus its decoded size."""

    path: Path
    data: bytes
    width: int
    height: int
    media_type: str = "image/png"

    def attachment(self) -> ImageAttachment:
        return ImageAttachment(data=self.data, media_type=self.media_type)


class Analyzer(Protocol):
    def analyze(self, first: SourceImage, second: SourceImage) -> str: ...

    def close(self) -> None: ...


@dataclass
class DifferenceAnalyzer:
    """Send both images with the comparison prompt and return the reply text."""

    config: DiffConfig
    prompt_profile: ComparisonPromptProfile
    client: Optional[BaseBackendClient] = field(default=None)

    def __post_init__(self) -> None:
        if self.client is None:
            self.client = create_backend_client(
                self.config.backend,
                base_url=self.config.base_url,
                model_name=self.config.model,
                api_key=self.config.api_key,
                timeout=self.config.timeout,
            )

    def analyze(self, first: SourceImage, second: SourceImage) -> str:
        logger.info(
            "Requesting comparison of %s and %s from %s (%s)",
            first.path.name,
            second.path.name,
            self.config.backend,
            self.config.model,
        )
        return self.client.generate(
            prompt=self.prompt_profile.render(),
            images=[first.attachment(), second.attachment()],
            max_tokens=self.config.max_tokens,
            temperature=self.config.temperature,
        )

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


def create_analyzer(config: DiffConfig) -> DifferenceAnalyzer:
    profile = get_prompt_profile(config.prompt_profile)
    return DifferenceAnalyzer(config=config, prompt_profile=profile)
