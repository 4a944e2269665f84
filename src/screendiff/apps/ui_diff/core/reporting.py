"""Report generation for the UI difference checker."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

from .models import ComparisonResult


def _cell(value: object) -> str:
    text = "" if value is None else str(value)
    text = " ".join(text.split())
    return text.replace("|", "\\|") or "-"


def write_result_json(result: ComparisonResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(result.to_json(), ensure_ascii=False, indent=2), encoding="utf-8"
    )


def write_markdown(result: ComparisonResult, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    lines: List[str] = ["# UI Difference Report", ""]
    lines.append(f"- Generated: {result.timestamp}")
    if result.highlighted_image_path is not None:
        lines.append(f"- Annotated image: `{result.highlighted_image_path}`")
    else:
        lines.append("- Annotated image: **not produced**")
    if result.error:
        lines.append(f"- Error: {result.error}")

    for name, dims in sorted(result.processed_dimensions.items()):
        lines.append(f"- Processed {name}: {dims.width}x{dims.height}")
    lines.append("")

    if not result.differences:
        lines.append("No differences were reported.")
    else:
        drawn = {diff.index for diff in result.canonical_differences if diff.renderable}
        lines.extend(
            [
                f"{len(result.differences)} UI differences detected.",
                "",
                "| # | Type | Location | Description | Before | After | Drawn |",
                "| --- | --- | --- | --- | --- | --- | --- |",
            ]
        )
        for diff in result.differences:
            lines.append(
                "| {pos} | {type} | {location} | {description} | {before} | {after} | {drawn} |".format(
                    pos=diff.position,
                    type=_cell(diff.type),
                    location=_cell(diff.location),
                    description=_cell(diff.description),
                    before=_cell(diff.before),
                    after=_cell(diff.after),
                    drawn="yes" if diff.position in drawn else "no",
                )
            )
    lines.append("")

    path.write_text("\n".join(lines), encoding="utf-8")
