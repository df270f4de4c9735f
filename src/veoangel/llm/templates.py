"""Request templates sent to every backend."""

DEFAULT_SYSTEM_PROMPT = """You are a prompt engineer for text-to-video models.
Turn a short video idea into a detailed, production-ready prompt covering ten
categories: scene description, visual style, camera movement, main subject,
background setting, lighting and mood, audio cue, color palette, dialogue or
background noise, and subtitles and language. Be concrete and cinematic."""

ENHANCE_REQUEST = (
    "Please enhance this basic video idea into a detailed VEO3 prompt "
    'using the 10-category framework: "{idea}"'
)

ANALYSIS_REQUEST = """
Please analyze this video idea and break it down into the 10 VEO3 categories. Return a JSON object with each category and your analysis:

Categories:
1. Scene Description
2. Visual Style
3. Camera Movement
4. Main Subject
5. Background Setting
6. Lighting/Mood
7. Audio Cue
8. Color Palette
9. Dialogue/Background Noise
10. Subtitles and Language

User's idea: "{idea}"

Return only valid JSON in this format:
{{
  "sceneDescription": "analysis...",
  "visualStyle": "analysis...",
  "cameraMovement": "analysis...",
  "mainSubject": "analysis...",
  "backgroundSetting": "analysis...",
  "lightingMood": "analysis...",
  "audioCue": "analysis...",
  "colorPalette": "analysis...",
  "dialogue": "analysis...",
  "subtitles": "analysis..."
}}"""


def build_enhance_request(idea: str) -> str:
    return ENHANCE_REQUEST.format(idea=idea)


def build_analysis_request(idea: str) -> str:
    return ANALYSIS_REQUEST.format(idea=idea)
