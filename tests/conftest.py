import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def render_reply(
    differences,
    *,
    image1=(800, 600),
    image2=(800, 600),
    include_dimensions=True,
    include_differences=True,
) -> str:
    """Build a chatty model reply containing the two fenced JSON blocks."""

    parts = ["I compared both screenshots carefully.\n"]
    if include_dimensions:
        dims = {
            "processed_dimensions": {
                "image1": {"width": image1[0], "height": image1[1]},
                "image2": {"width": image2[0], "height": image2[1]},
            }
        }
        parts.append("```json\n" + json.dumps(dims, indent=2) + "\n```\n")
    parts.append("Here is what changed between them:\n")
    if include_differences:
        parts.append(
            "```json\n" + json.dumps({"differences": differences}, indent=2) + "\n```\n"
        )
    parts.append("Let me know if you need anything else.")
    return "\n".join(parts)


@pytest.fixture
def reply_factory():
    return render_reply


@pytest.fixture
def make_image(tmp_path):
    from PIL import Image

    def _make(name="screen.png", size=(800, 600), colour=(255, 255, 255)):
        path = tmp_path / name
        Image.new("RGB", size, colour).save(path)
        return path

    return _make
