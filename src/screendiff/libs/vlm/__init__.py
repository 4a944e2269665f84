"""Shared utilities for talking to multimodal inference backends."""

from .backends import (  # noqa: F401
    BACKEND_REGISTRY,
    BaseBackendClient,
    ImageAttachment,
    VLMBackend,
    VLMBackendError,
    create_backend_client,
)

__all__ = [
    "BACKEND_REGISTRY",
    "BaseBackendClient",
    "ImageAttachment",
    "VLMBackend",
    "VLMBackendError",
    "create_backend_client",
]
