"""Prompt profiles for screenshot comparison requests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

_RESPONSE_FORMAT = """\
Before analysing, report the dimensions you processed for each image in exactly this form:

```json
{
  "processed_dimensions": {
    "image1": { "width": W1, "height": H1 },
    "image2": { "width": W2, "height": H2 }
  }
}
```

Use those dimensions as the reference for every coordinate you return. Then list the differences:

```json
{
  "differences": [
    {
      "type": "text_change",
      "location": "header",
      "description": "Question mark changed to exclamation mark",
      "coordinates": { "x1": 123, "y1": 456, "x2": 789, "y2": 501 },
      "highlight_area": { "x1": 113, "y1": 446, "x2": 799, "y2": 511 },
      "before": "text before",
      "after": "text after"
    }
  ]
}
```

- coordinates: tight box around the changed element with about 5 px of clearance on every side.
- highlight_area: the same box expanded by about 10 px so the change is easy to see.
- All coordinates are absolute pixels in the processed dimensions of the second image.
- Use one entry per affected element.
- If there are no significant differences, return:
```json
{ "differences": [] }
```
"""


@dataclass(frozen=True)
class ComparisonPromptProfile:
    """Instruction text sent with each image pair."""

    name: str
    description: str
    preamble: str

    def render(self) -> str:
        return f"{self.preamble.strip()}\n\n{_RESPONSE_FORMAT}"


PROFILES: Dict[str, ComparisonPromptProfile] = {
    "ui_screenshots": ComparisonPromptProfile(
        name="ui_screenshots",
        description="Detailed UI review of two website screenshots.",
        preamble=(
            "Compare these two website screenshots and describe every UI difference. Focus on:\n"
            "1. Text changes (wording, punctuation)\n"
            "2. Button text or appearance changes\n"
            "3. Layout differences (moved, resized or re-aligned elements)\n"
            "4. Elements added or removed (buttons, images, sections)\n"
            "5. Colour or style changes (backgrounds, fonts, borders, shadows)\n\n"
            "For each difference give a JSON entry with precise coordinates whose box fully "
            "encloses the change."
        ),
    ),
    "ui_screenshots_strict": ComparisonPromptProfile(
        name="ui_screenshots_strict",
        description="Same contract, asking for the two JSON blocks and nothing else.",
        preamble=(
            "You are a visual regression checker. Compare the two screenshots and reply with "
            "the two fenced JSON blocks below and no other prose. Valid types are "
            "text_change, layout_change, element_added, element_removed and style_change."
        ),
    ),
}

DEFAULT_PROFILE = "ui_screenshots"


def get_prompt_profile(name: Optional[str] = None) -> ComparisonPromptProfile:
    """Look up a profile by name, falling back to the default."""

    if name and name in PROFILES:
        return PROFILES[name]
    return PROFILES[DEFAULT_PROFILE]


def profile_names() -> List[str]:
    return sorted(PROFILES)
