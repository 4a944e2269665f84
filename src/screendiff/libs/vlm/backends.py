"""Backend adapters for multimodal inference services."""

from __future__ import annotations

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Type

import requests

logger = logging.getLogger(__name__)


class VLMBackend(str, Enum):
    """Supported backend identifiers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    VLLM = "vllm"
    LMDEPLOY = "lmdeploy"


class VLMBackendError(RuntimeError):
    """Raised when a backend fails to execute an inference request."""


@dataclass(frozen=True)
class ImageAttachment:
    """Encoded image sent alongside a prompt."""

    data: bytes
    media_type: str = "image/png"

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def as_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.as_base64()}"


class BaseBackendClient(ABC):
    """Abstract backend adapter that communicates with a serving stack."""

    GENERATE_PATH = "/chat/completions"

    def __init__(
        self,
        *,
        base_url: str,
        model_name: str,
        api_key: str = "EMPTY",
        timeout: int = 120,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(self.default_headers())
        self.last_error: Optional[str] = None

    @abstractmethod
    def default_headers(self) -> Dict[str, str]:
        """Headers attached to every request issued by this backend."""

    @abstractmethod
    def build_payload(
        self,
        *,
        prompt: str,
        images: Sequence[ImageAttachment],
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        """Translate a prompt and its images into the backend's request body."""

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> str:
        """Pull the reply text out of a decoded response body."""

    def generate(
        self,
        *,
        prompt: str,
        images: Sequence[ImageAttachment] = (),
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> str:
        """Send one request and return the reply text. Never retries."""

        payload = self.build_payload(
            prompt=prompt,
            images=images,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        url = f"{self.base_url}{self.GENERATE_PATH}"
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            self.last_error = str(exc)
            raise VLMBackendError(f"Request to {url} failed: {exc}") from exc

        if response.status_code != 200:
            self.last_error = f"HTTP {response.status_code}: {response.text[:200]}"
            raise VLMBackendError(
                f"Inference request failed with {self.last_error}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise VLMBackendError("Inference response was not valid JSON") from exc

        text = self.extract_text(data)
        if not text:
            raise VLMBackendError("Inference response contained no text content")
        self.last_error = None
        return text

    def close(self) -> None:
        self.session.close()


class OpenAICompatibleBackend(BaseBackendClient):
    """Backend adapter for OpenAI-compatible endpoints (OpenAI, vLLM, LMDeploy)."""

    def default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        *,
        prompt: str,
        images: Sequence[ImageAttachment],
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            content.append(
                {"type": "image_url", "image_url": {"url": image.as_data_url()}}
            )
        return {
            "model": self.model_name,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    def extract_text(self, data: Dict[str, Any]) -> str:
        choices = data.get("choices") or [{}]
        content = choices[0].get("message", {}).get("content", "")
        return str(content or "").strip()


class AnthropicBackend(BaseBackendClient):
    """Backend adapter for the Anthropic Messages API."""

    GENERATE_PATH = "/messages"
    API_VERSION = "2023-06-01"

    def default_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        *,
        prompt: str,
        images: Sequence[ImageAttachment],
        max_tokens: int,
        temperature: float,
    ) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for image in images:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": image.media_type,
                        "data": image.as_base64(),
                    },
                }
            )
        return {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": content}],
        }

    def extract_text(self, data: Dict[str, Any]) -> str:
        blocks = data.get("content") or []
        parts = [
            str(block.get("text", ""))
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        return "".join(parts).strip()


BACKEND_REGISTRY: Dict[VLMBackend, Type[BaseBackendClient]] = {
    VLMBackend.ANTHROPIC: AnthropicBackend,
    VLMBackend.OPENAI: OpenAICompatibleBackend,
    VLMBackend.VLLM: OpenAICompatibleBackend,
    VLMBackend.LMDEPLOY: OpenAICompatibleBackend,
}


def create_backend_client(
    backend: VLMBackend | str,
    *,
    base_url: str,
    model_name: str,
    api_key: str = "EMPTY",
    timeout: int = 120,
    session: Optional[requests.Session] = None,
) -> BaseBackendClient:
    """Instantiate the backend adapter for the requested serving stack."""

    try:
        backend_id = backend if isinstance(backend, VLMBackend) else VLMBackend(backend)
    except ValueError as exc:
        raise ValueError(f"Unsupported VLM backend: {backend}") from exc

    backend_cls = BACKEND_REGISTRY[backend_id]
    return backend_cls(
        base_url=base_url,
        model_name=model_name,
        api_key=api_key,
        timeout=timeout,
        session=session,
    )
