"""Command line interface for the UI difference checker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer

from screendiff.libs.vlm import VLMBackendError
from screendiff.logging_utils import configure_logging

from ..core.config import DiffConfig, load_config
from ..core.engine import DifferenceEngine
from ..core.errors import (
    DifferenceEngineError,
    ExtractionError,
    MalformedPayloadError,
    WriteError,
)
from ..core.models import ComparisonResult
from ..core.output import write_text_artifact
from ..core.prompts import get_prompt_profile, profile_names
from ..core.reporting import write_markdown, write_result_json

LOG_PATH = configure_logging("ui_diff")
logger = logging.getLogger(__name__)
logger.info("UI diff logging initialised → %s", LOG_PATH)

PARTIAL_RESULT_EXIT_CODE = 2

app = typer.Typer(help="Highlight UI differences between two screenshots.")


def _resolve_config(**overrides: object) -> DiffConfig:
    try:
        return load_config(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _save_diagnostics(exc: DifferenceEngineError, target: Path, config: DiffConfig) -> None:
    payload = getattr(exc, "payload", "")
    if not payload or config.save_raw_response:
        return
    try:
        saved = write_text_artifact(payload, target, config.output_dir)
    except WriteError as write_exc:
        logger.error("Could not save raw response: %s", write_exc)
        return
    typer.echo(f"Raw response saved → {saved}", err=True)


def _fail(exc: Exception) -> NoReturn:
    logger.error("Comparison failed: %s", exc)
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


def _report(result: ComparisonResult, config: DiffConfig) -> None:
    write_result_json(result, config.result_json)
    write_markdown(result, config.summary_path)

    typer.echo(f"\n{len(result.differences)} UI differences detected")
    for diff in result.differences:
        typer.echo(f"  #{diff.position} [{diff.type or 'unknown'}] {diff.description}")

    typer.echo(
        f"\nResult JSON → {config.result_json}\nMarkdown summary → {config.summary_path}"
    )
    if result.highlighted_image_path is not None:
        typer.echo(f"Highlighted image → {result.highlighted_image_path}")
        return
    if not result.differences:
        typer.echo("No differences detected; no highlighted image was produced.")
        return

    reason = result.error or "no difference carried a drawable highlight area"
    typer.echo(f"Partial result: highlighted image not produced ({reason}).", err=True)
    raise typer.Exit(code=PARTIAL_RESULT_EXIT_CODE)


@app.command()
def compare(
    image1: Path = typer.Argument(..., help="Baseline screenshot."),
    image2: Path = typer.Argument(..., help="Screenshot to annotate."),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for annotated images."
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", help="Inference backend (anthropic, openai, vllm, lmdeploy)."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Base URL of the inference API."
    ),
    model: Optional[str] = typer.Option(None, "--model", help="Model identifier."),
    api_key: Optional[str] = typer.Option(
        None, "--api-key", help="API key (defaults to the backend's env variable)."
    ),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", help="Request timeout in seconds."
    ),
    max_tokens: Optional[int] = typer.Option(
        None, "--max-tokens", help="Maximum tokens in the model reply."
    ),
    temperature: Optional[float] = typer.Option(
        None, "--temperature", help="Sampling temperature."
    ),
    prompt_profile: Optional[str] = typer.Option(
        None, "--prompt-profile", help="Prompt profile name."
    ),
    result_json: Optional[Path] = typer.Option(
        None, "--result-json", help="Machine-readable result path."
    ),
    summary_path: Optional[Path] = typer.Option(
        None, "--summary", help="Human-readable Markdown summary path."
    ),
    save_response: Optional[bool] = typer.Option(
        None,
        "--save-response/--no-save-response",
        help="Keep the raw model reply next to the annotated image.",
    ),
) -> None:
    config = _resolve_config(
        output_dir=output_dir,
        backend=backend,
        base_url=base_url,
        model=model,
        api_key=api_key,
        timeout=timeout,
        max_tokens=max_tokens,
        temperature=temperature,
        prompt_profile=prompt_profile,
        result_json=result_json,
        summary_path=summary_path,
        save_raw_response=save_response,
    )
    logger.info(
        "ui_diff_config",
        extra={
            "event_type": "config",
            "backend": config.backend,
            "model": config.model,
            "output_dir": str(config.output_dir),
            "prompt_profile": config.prompt_profile,
        },
    )

    engine = DifferenceEngine(config)
    try:
        result = engine.compare(image1, image2)
    except (ExtractionError, MalformedPayloadError) as exc:
        _save_diagnostics(exc, image2, config)
        _fail(exc)
    except (DifferenceEngineError, VLMBackendError) as exc:
        _fail(exc)
    finally:
        engine.close()

    _report(result, config)


@app.command()
def annotate(
    image: Path = typer.Argument(..., help="Screenshot the response refers to."),
    response_file: Path = typer.Argument(..., help="Saved model reply text."),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for annotated images."
    ),
    result_json: Optional[Path] = typer.Option(
        None, "--result-json", help="Machine-readable result path."
    ),
    summary_path: Optional[Path] = typer.Option(
        None, "--summary", help="Human-readable Markdown summary path."
    ),
) -> None:
    """Re-render a saved model reply without calling the inference service."""

    config = _resolve_config(
        output_dir=output_dir, result_json=result_json, summary_path=summary_path
    )
    try:
        text = response_file.read_text(encoding="utf-8")
    except OSError as exc:
        _fail(exc)

    engine = DifferenceEngine(config)
    try:
        result = engine.annotate(image, text)
    except DifferenceEngineError as exc:
        _fail(exc)

    _report(result, config)


@app.command()
def prompt(
    prompt_profile: Optional[str] = typer.Option(
        None, "--prompt-profile", help=f"One of: {', '.join(profile_names())}."
    ),
) -> None:
    """Print the instruction text sent with each comparison."""

    typer.echo(get_prompt_profile(prompt_profile).render())


if __name__ == "__main__":  # pragma: no cover
    app()
