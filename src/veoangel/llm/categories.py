"""
Structured category breakdown.

The analysis call asks the backend for a ten-field JSON object. Anything
that does not parse into that shape is kept verbatim behind a parse-error
marker instead of failing the call.
"""

import json
import re
from dataclasses import dataclass
from typing import Any

# (wire key, attribute name)
CATEGORY_FIELDS: tuple[tuple[str, str], ...] = (
    ("sceneDescription", "scene_description"),
    ("visualStyle", "visual_style"),
    ("cameraMovement", "camera_movement"),
    ("mainSubject", "main_subject"),
    ("backgroundSetting", "background_setting"),
    ("lightingMood", "lighting_mood"),
    ("audioCue", "audio_cue"),
    ("colorPalette", "color_palette"),
    ("dialogue", "dialogue"),
    ("subtitles", "subtitles"),
)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class StructuredCategories:
    scene_description: str = ""
    visual_style: str = ""
    camera_movement: str = ""
    main_subject: str = ""
    background_setting: str = ""
    lighting_mood: str = ""
    audio_cue: str = ""
    color_palette: str = ""
    dialogue: str = ""
    subtitles: str = ""
    parse_error: bool = False
    raw_text: str | None = None

    @classmethod
    def unparsed(cls, raw_text: str) -> "StructuredCategories":
        return cls(parse_error=True, raw_text=raw_text)

    def to_dict(self) -> dict[str, Any]:
        if self.parse_error:
            return {
                "parseError": True,
                "error": "Failed to parse analysis",
                "rawText": self.raw_text,
            }
        return {key: getattr(self, attr) for key, attr in CATEGORY_FIELDS}


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def parse_categories(text: str) -> StructuredCategories:
    """Parse backend output into categories, degrading to raw text."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return StructuredCategories.unparsed(text)

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return StructuredCategories.unparsed(text)

    if not isinstance(data, dict) or any(key not in data for key, _ in CATEGORY_FIELDS):
        return StructuredCategories.unparsed(text)

    values = {attr: _as_text(data[key]) for key, attr in CATEGORY_FIELDS}
    return StructuredCategories(**values)
