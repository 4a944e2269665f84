from datetime import datetime, timezone
from pathlib import Path

import pytest

pytest.importorskip("PIL")
from PIL import Image

from screendiff.apps.ui_diff.core.errors import WriteError
from screendiff.apps.ui_diff.core.output import (
    build_output_filename,
    ensure_output_dir,
    filename_timestamp,
    write_annotated_image,
    write_text_artifact,
)

FIXED_NOW = datetime(2026, 3, 14, 15, 9, 26, 535897, tzinfo=timezone.utc)


def test_filename_timestamp_is_full_precision_and_punctuation_free():
    stamp = filename_timestamp(FIXED_NOW)

    assert stamp == "2026-03-14T15-09-26-535897+00-00"
    assert ":" not in stamp and "." not in stamp


def test_output_filename_pattern():
    name = build_output_filename(Path("/uploads/landing page.v2.png"), FIXED_NOW)

    assert name == "diff_landing page.v2_2026-03-14T15-09-26-535897+00-00.png"


def test_ensure_output_dir_is_idempotent(tmp_path):
    target = tmp_path / "nested" / "output"

    first = ensure_output_dir(target)
    second = ensure_output_dir(target)

    assert first == second == target.resolve()
    assert target.is_dir()


def test_write_annotated_image_creates_png(tmp_path):
    image = Image.new("RGBA", (40, 30), (10, 20, 30, 255))

    path = write_annotated_image(image, Path("after.png"), tmp_path / "out", now=FIXED_NOW)

    assert path.is_absolute()
    assert path.parent == (tmp_path / "out").resolve()
    assert path.name.startswith("diff_after_")
    with Image.open(path) as saved:
        assert saved.format == "PNG"
        assert saved.size == (40, 30)


def test_same_timestamp_never_overwrites(tmp_path):
    image = Image.new("RGB", (8, 8))

    first = write_annotated_image(image, Path("after.png"), tmp_path, now=FIXED_NOW)
    second = write_annotated_image(image, Path("after.png"), tmp_path, now=FIXED_NOW)

    assert first != second
    assert first.exists() and second.exists()
    assert second.stem == f"{first.stem}-1"


def test_unwritable_destination_raises_write_error(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied")

    with pytest.raises(WriteError) as excinfo:
        write_annotated_image(Image.new("RGB", (4, 4)), Path("a.png"), blocker / "out")

    assert excinfo.value.path == blocker / "out"


def test_write_text_artifact_keeps_raw_reply(tmp_path):
    path = write_text_artifact("raw reply", Path("after.png"), tmp_path, now=FIXED_NOW)

    assert path.name == "response_after_2026-03-14T15-09-26-535897+00-00.txt"
    assert path.read_text(encoding="utf-8") == "raw reply"


def test_text_artifact_failure_names_the_raw_response(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied")

    with pytest.raises(WriteError) as excinfo:
        write_text_artifact("raw reply", Path("after.png"), blocker)

    assert excinfo.value.artifact == "raw response"
    assert str(excinfo.value).startswith("Failed to write raw response to ")
