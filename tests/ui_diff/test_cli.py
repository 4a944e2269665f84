import json
from unittest.mock import Mock, patch

import pytest

typer_testing = pytest.importorskip("typer.testing")
pytest.importorskip("PIL")
from PIL import Image

from screendiff.apps.ui_diff.cli.main import PARTIAL_RESULT_EXIT_CODE, app

CliRunner = typer_testing.CliRunner

runner = CliRunner()

STYLE_CHANGE = {
    "type": "style_change",
    "location": "primary button",
    "description": "Button colour changed from blue to green",
    "coordinates": {"x1": 30, "y1": 30, "x2": 90, "y2": 60},
    "highlight_area": {"x1": 20, "y1": 20, "x2": 100, "y2": 70},
}


def _paths(tmp_path):
    return {
        "output": tmp_path / "out",
        "json": tmp_path / "result.json",
        "summary": tmp_path / "summary.md",
    }


def _path_args(paths):
    return [
        "--output-dir",
        str(paths["output"]),
        "--result-json",
        str(paths["json"]),
        "--summary",
        str(paths["summary"]),
    ]


def _anthropic_reply(text):
    response = Mock()
    response.status_code = 200
    response.json.return_value = {"content": [{"type": "text", "text": text}]}
    return response


def test_prompt_prints_response_contract():
    result = runner.invoke(app, ["prompt", "--prompt-profile", "ui_screenshots_strict"])

    assert result.exit_code == 0, result.output
    assert "visual regression checker" in result.output
    assert '"processed_dimensions"' in result.output


def test_annotate_writes_reports_and_image(tmp_path, make_image, reply_factory):
    image = make_image("after.png", size=(400, 300))
    response_file = tmp_path / "reply.txt"
    response_file.write_text(reply_factory([STYLE_CHANGE], image2=(200, 150)))
    paths = _paths(tmp_path)

    result = runner.invoke(
        app, ["annotate", str(image), str(response_file), *_path_args(paths)]
    )

    assert result.exit_code == 0, result.output
    assert "1 UI differences detected" in result.output
    assert "#1 [style_change]" in result.output
    data = json.loads(paths["json"].read_text(encoding="utf-8"))
    highlighted = data["highlightedImagePath"]
    with Image.open(highlighted) as annotated:
        assert annotated.size == (400, 340)
    assert "| 1 | style_change |" in paths["summary"].read_text(encoding="utf-8")


def test_annotate_without_differences_exits_cleanly(tmp_path, make_image, reply_factory):
    image = make_image("after.png")
    response_file = tmp_path / "reply.txt"
    response_file.write_text(reply_factory([]))
    paths = _paths(tmp_path)

    result = runner.invoke(
        app, ["annotate", str(image), str(response_file), *_path_args(paths)]
    )

    assert result.exit_code == 0, result.output
    assert "no highlighted image was produced" in result.output
    assert json.loads(paths["json"].read_text())["highlightedImagePath"] is None


def test_annotate_reports_partial_result(tmp_path, make_image, reply_factory):
    image = make_image("after.png")
    entry = {"type": "text_change", "description": "no geometry"}
    response_file = tmp_path / "reply.txt"
    response_file.write_text(reply_factory([entry]))

    result = runner.invoke(
        app, ["annotate", str(image), str(response_file), *_path_args(_paths(tmp_path))]
    )

    assert result.exit_code == PARTIAL_RESULT_EXIT_CODE
    assert "Partial result" in result.output


def test_annotate_missing_block_fails(tmp_path, make_image, reply_factory):
    image = make_image("after.png")
    response_file = tmp_path / "reply.txt"
    response_file.write_text(reply_factory([STYLE_CHANGE], include_dimensions=False))

    result = runner.invoke(
        app, ["annotate", str(image), str(response_file), *_path_args(_paths(tmp_path))]
    )

    assert result.exit_code == 1
    assert "processed_dimensions" in result.output


@patch("requests.Session.post")
def test_compare_calls_backend_and_annotates(mock_post, tmp_path, make_image, reply_factory):
    before = make_image("before.png")
    after = make_image("after.png")
    mock_post.return_value = _anthropic_reply(
        reply_factory([STYLE_CHANGE], image1=(400, 300), image2=(400, 300))
    )
    paths = _paths(tmp_path)

    result = runner.invoke(
        app,
        ["compare", str(before), str(after), "--api-key", "test-key", *_path_args(paths)],
    )

    assert result.exit_code == 0, result.output
    url = mock_post.call_args.args[0]
    assert url == "https://api.anthropic.com/v1/messages"
    body = mock_post.call_args.kwargs["json"]
    images = [block for block in body["messages"][0]["content"] if block["type"] == "image"]
    assert len(images) == 2
    assert list(paths["output"].glob("diff_after_*.png"))


@patch("requests.Session.post")
def test_compare_saves_reply_when_extraction_fails(mock_post, tmp_path, make_image):
    before = make_image("before.png")
    after = make_image("after.png")
    mock_post.return_value = _anthropic_reply("Sorry, I cannot compare these images.")
    paths = _paths(tmp_path)

    result = runner.invoke(app, ["compare", str(before), str(after), *_path_args(paths)])

    assert result.exit_code == 1
    saved = list(paths["output"].glob("response_after_*.txt"))
    assert len(saved) == 1
    assert saved[0].read_text(encoding="utf-8") == "Sorry, I cannot compare these images."
    assert not paths["json"].exists()


@patch("requests.Session.post")
def test_compare_backend_failure_exits_with_error(mock_post, tmp_path, make_image):
    mock_post.return_value = Mock(status_code=401, text="invalid x-api-key")

    result = runner.invoke(
        app,
        [
            "compare",
            str(make_image("before.png")),
            str(make_image("after.png")),
            *_path_args(_paths(tmp_path)),
        ],
    )

    assert result.exit_code == 1
    assert "HTTP 401" in result.output


def test_compare_rejects_unknown_backend(tmp_path, make_image):
    result = runner.invoke(
        app,
        [
            "compare",
            str(make_image("before.png")),
            str(make_image("after.png")),
            "--backend",
            "triton",
        ],
    )

    assert result.exit_code == 2
    assert "Unknown backend" in result.output


@patch("requests.Session.post")
def test_compare_with_save_response_keeps_one_copy_on_failure(
    mock_post, tmp_path, make_image
):
    mock_post.return_value = _anthropic_reply("No JSON here.")
    paths = _paths(tmp_path)

    result = runner.invoke(
        app,
        [
            "compare",
            str(make_image("before.png")),
            str(make_image("after.png")),
            "--save-response",
            *_path_args(paths),
        ],
    )

    assert result.exit_code == 1
    saved = list(paths["output"].glob("response_after_*.txt"))
    assert len(saved) == 1
    assert saved[0].read_text(encoding="utf-8") == "No JSON here."


def test_compare_rejects_zero_timeout(tmp_path, make_image):
    result = runner.invoke(
        app,
        [
            "compare",
            str(make_image("before.png")),
            str(make_image("after.png")),
            "--timeout",
            "0",
            *_path_args(_paths(tmp_path)),
        ],
    )

    assert result.exit_code == 2
    assert "must be positive" in result.output
