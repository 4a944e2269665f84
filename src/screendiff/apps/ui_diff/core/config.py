"""Configuration helpers for the UI difference checker."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import tomllib

from screendiff.libs.vlm import VLMBackend

from .prompts import PROFILES

_CONFIG_ENV_PREFIX = "SCREENDIFF_UI_DIFF__"

_API_KEY_ENV = {
    VLMBackend.ANTHROPIC: "ANTHROPIC_API_KEY",
    VLMBackend.OPENAI: "OPENAI_API_KEY",
}


def _find_pyproject(start: Optional[Path] = None) -> Optional[Path]:
    """Locate the closest ``pyproject.toml`` relative to *start*."""

    current = (start or Path.cwd()).resolve()
    for candidate in [current, *current.parents]:
        pyproject = candidate / "pyproject.toml"
        if pyproject.exists():
            return pyproject
    return None


def _coerce_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return default


def _coerce_int(value: object, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_float(value: object, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_path(value: object) -> Optional[Path]:
    if isinstance(value, Path):
        return value
    if isinstance(value, str) and value.strip():
        return Path(value).expanduser()
    return None


@dataclass(frozen=True)
class DiffSettings:
    """Default configuration values sourced from project metadata."""

    default_output_dir: Path = Path("output")
    default_result_json: Path = Path("output/comparison_result.json")
    default_summary_path: Path = Path("output/comparison_summary.md")
    default_backend: str = VLMBackend.ANTHROPIC.value
    default_base_url: str = "https://api.anthropic.com/v1"
    default_model: str = "claude-3-7-sonnet-20250219"
    default_api_key: str = ""
    default_timeout: int = 120
    default_max_tokens: int = 4096
    default_temperature: float = 0.2
    default_prompt_profile: str = "ui_screenshots"
    default_legend_height: int = 40
    default_font_path: Optional[Path] = None
    default_save_raw_response: bool = False


@dataclass(frozen=True)
class DiffConfig:
    """Fully resolved runtime configuration for one invocation."""

    output_dir: Path
    result_json: Path
    summary_path: Path
    backend: str
    base_url: str
    model: str
    api_key: str
    timeout: int
    max_tokens: int
    temperature: float
    prompt_profile: str
    legend_height: int
    font_path: Optional[Path]
    save_raw_response: bool


def _load_pyproject_settings(start: Optional[Path]) -> Dict[str, object]:
    pyproject = _find_pyproject(start)
    if not pyproject:
        return {}

    try:
        with pyproject.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError):
        return {}

    tool_cfg = data.get("tool", {}).get("screendiff", {})
    if not isinstance(tool_cfg, dict):
        return {}

    app_cfg = tool_cfg.get("ui_diff")
    return dict(app_cfg) if isinstance(app_cfg, dict) else {}


def _load_env_settings() -> Dict[str, object]:
    values: Dict[str, object] = {}
    for env_key, env_value in os.environ.items():
        if not env_key.startswith(_CONFIG_ENV_PREFIX):
            continue
        values[env_key[len(_CONFIG_ENV_PREFIX) :].lower()] = env_value
    return values


def load_settings(start: Optional[Path] = None) -> DiffSettings:
    """Load project defaults, applying environment overrides when present."""

    raw = _load_pyproject_settings(start)
    raw.update(_load_env_settings())
    defaults = DiffSettings()

    return DiffSettings(
        default_output_dir=_as_path(raw.get("default_output_dir"))
        or defaults.default_output_dir,
        default_result_json=_as_path(raw.get("default_result_json"))
        or defaults.default_result_json,
        default_summary_path=_as_path(raw.get("default_summary_path"))
        or defaults.default_summary_path,
        default_backend=str(raw.get("default_backend") or defaults.default_backend).strip(),
        default_base_url=str(
            raw.get("default_base_url") or defaults.default_base_url
        ).strip(),
        default_model=str(raw.get("default_model") or defaults.default_model).strip(),
        default_api_key=str(raw.get("default_api_key") or defaults.default_api_key),
        default_timeout=_coerce_int(raw.get("default_timeout"), defaults.default_timeout),
        default_max_tokens=_coerce_int(
            raw.get("default_max_tokens"), defaults.default_max_tokens
        ),
        default_temperature=_coerce_float(
            raw.get("default_temperature"), defaults.default_temperature
        ),
        default_prompt_profile=str(
            raw.get("default_prompt_profile") or defaults.default_prompt_profile
        ).strip(),
        default_legend_height=_coerce_int(
            raw.get("default_legend_height"), defaults.default_legend_height
        ),
        default_font_path=_as_path(raw.get("default_font_path")),
        default_save_raw_response=_coerce_bool(
            raw.get("default_save_raw_response"), defaults.default_save_raw_response
        ),
    )


def _api_key_from_env(backend: VLMBackend) -> str:
    env_name = _API_KEY_ENV.get(backend)
    if env_name:
        return os.environ.get(env_name, "").strip()
    return ""


def build_runtime_config(
    *,
    settings: DiffSettings,
    output_dir: Optional[Path] = None,
    result_json: Optional[Path] = None,
    summary_path: Optional[Path] = None,
    backend: Optional[str] = None,
    base_url: Optional[str] = None,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    timeout: Optional[int] = None,
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    prompt_profile: Optional[str] = None,
    legend_height: Optional[int] = None,
    font_path: Optional[Path] = None,
    save_raw_response: Optional[bool] = None,
) -> DiffConfig:
    """Merge CLI overrides with defaults to produce a runtime config."""

    resolved_backend = (backend or settings.default_backend).strip().lower()
    try:
        backend_id = VLMBackend(resolved_backend)
    except ValueError as exc:
        choices = ", ".join(item.value for item in VLMBackend)
        raise ValueError(
            f"Unknown backend '{resolved_backend}' (expected one of: {choices})"
        ) from exc

    resolved_model = (model or settings.default_model).strip()
    if not resolved_model:
        raise ValueError("A model identifier must be configured")

    resolved_base_url = (base_url or settings.default_base_url).strip()
    if not resolved_base_url:
        raise ValueError("A base URL must be configured")

    resolved_timeout = int(settings.default_timeout if timeout is None else timeout)
    resolved_max_tokens = int(
        settings.default_max_tokens if max_tokens is None else max_tokens
    )
    if resolved_timeout <= 0 or resolved_max_tokens <= 0:
        raise ValueError("Timeout and max tokens must be positive")

    resolved_temperature = (
        settings.default_temperature if temperature is None else float(temperature)
    )
    if not 0.0 <= resolved_temperature <= 2.0:
        raise ValueError("Temperature must be in the range [0, 2]")

    resolved_profile = (prompt_profile or settings.default_prompt_profile).strip()
    if resolved_profile not in PROFILES:
        raise ValueError(f"Unknown prompt profile '{resolved_profile}'")

    resolved_legend = int(
        settings.default_legend_height if legend_height is None else legend_height
    )
    if resolved_legend < 20:
        raise ValueError("Legend height must be at least 20 pixels")

    resolved_api_key = (
        (api_key or settings.default_api_key).strip()
        or _api_key_from_env(backend_id)
        or "EMPTY"
    )

    resolved_font = font_path or settings.default_font_path
    resolved_save_raw = (
        settings.default_save_raw_response
        if save_raw_response is None
        else bool(save_raw_response)
    )

    return DiffConfig(
        output_dir=(output_dir or settings.default_output_dir).expanduser(),
        result_json=(result_json or settings.default_result_json).expanduser(),
        summary_path=(summary_path or settings.default_summary_path).expanduser(),
        backend=backend_id.value,
        base_url=resolved_base_url,
        model=resolved_model,
        api_key=resolved_api_key,
        timeout=resolved_timeout,
        max_tokens=resolved_max_tokens,
        temperature=resolved_temperature,
        prompt_profile=resolved_profile,
        legend_height=resolved_legend,
        font_path=resolved_font.expanduser() if resolved_font else None,
        save_raw_response=resolved_save_raw,
    )


def load_config(*, start: Optional[Path] = None, **overrides: object) -> DiffConfig:
    """Convenience helper used by the CLI to resolve the runtime config."""

    settings = load_settings(start)
    return build_runtime_config(settings=settings, **overrides)
