"""
Workflow Presets

Creative presets (system instruction, art style) per workflow and the
prompt builders and response schemas used by the text generation calls.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence


@dataclass(frozen=True)
class Workflow:
    key: str
    name: str
    system_instruction: str
    art_style: str


WORKFLOWS: Mapping[str, Workflow] = MappingProxyType(
    {
        "music-video": Workflow(
            key="music-video",
            name="music videos",
            system_instruction=(
                "You are a creative director for artistic, abstract music videos. Based on "
                "the user's prompt, generate a list of distinct, evocative scenes. The scenes "
                "should be concise, visually descriptive, and align with an artsy, abstract, "
                "futuristic, and techy vibe."
            ),
            art_style=(
                "Style: artsy, washed out aesthetic, warm muted colors, abstract, dreamy, "
                "ethereal, futuristic, technological, emotive, cinematic lighting, high "
                "detail, 4k."
            ),
        ),
        "product-commercial": Workflow(
            key="product-commercial",
            name="product commercials",
            system_instruction=(
                "You are a director for high-end product commercials. Based on the user's "
                "prompt, generate scenes that are clean, modern, and visually appealing. "
                "Focus on highlighting the product's features and benefits in a "
                "sophisticated way."
            ),
            art_style=(
                "Style: clean, modern, minimalist, bright studio lighting, sharp focus, "
                "high-end commercial photography, professional, polished, vibrant but "
                "controlled color palette, 4k."
            ),
        ),
        "viral-social": Workflow(
            key="viral-social",
            name="viral social videos",
            system_instruction=(
                "You are a content creator specializing in viral social media videos. Based "
                "on the user's prompt, generate scenes for a fast-paced, engaging, and trendy "
                "video (like for TikTok or Reels). Think quick cuts, bold visuals, and "
                "eye-catching moments."
            ),
            art_style=(
                "Style: vibrant, high-energy, trendy, bold colors, dynamic angles, authentic, "
                "shot on a high-end smartphone aesthetic, engaging, direct-to-camera feel, 4k."
            ),
        ),
        "explainer-video": Workflow(
            key="explainer-video",
            name="explainer videos",
            system_instruction=(
                "You are a creative lead for animated explainer videos. Based on the user's "
                "prompt, generate scenes that are clear, simple, and informative. Use "
                "concepts that can be easily translated to 2D animation with iconography and "
                "simplified characters."
            ),
            art_style=(
                "Style: 2D flat animation, simple iconography, friendly characters, bright "
                "and approachable color palette, clean lines, minimalist, corporate-friendly, "
                "informative graphic style, 4k."
            ),
        ),
    }
)

DEFAULT_WORKFLOW = "music-video"


def get_workflow(key: Optional[str]) -> Workflow:
    return WORKFLOWS.get(key or DEFAULT_WORKFLOW) or WORKFLOWS[DEFAULT_WORKFLOW]


# Text models
STORYBOARD_MODEL = "gemini-2.5-flash"
IMAGE_EDIT_MODEL = "gemini-2.5-flash-image"

# Image models answering through generateContent instead of Imagen predict
INLINE_IMAGE_MODELS = frozenset({"gemini-2.5-flash-image", "gemini-3-pro-image-preview"})

REGENERATE_DESCRIPTION_INSTRUCTION = (
    "You are a creative director for artistic, abstract music videos. Your task is to "
    "revise a scene description. Make it more evocative, visually descriptive, and aligned "
    "with an artsy, abstract, futuristic, and techy vibe. Respond ONLY with the new, single, "
    "concise scene description text. Do not add any extra text, markdown, or explanations."
)

VIDEO_PROMPT_INSTRUCTION = (
    "You are a creative director specializing in animation. Based on the static image and "
    "its description, create a detailed, production-grade prompt for an AI video generation "
    "model (like VEO) to animate this scene. The prompt should describe the subtle "
    "movements, camera motion (e.g., slow pan, gentle zoom in), and atmospheric effects "
    "(e.g., shimmering light, drifting dust motes) that would bring the image to life "
    "beautifully and cinematically. The prompt should be a single, coherent paragraph. "
    "Respond ONLY with the prompt text."
)

IMAGE_EDIT_PROMPT_INSTRUCTION = (
    "You are a creative director specialized in writing concise, production-ready image "
    "edit prompts for an image-editing model. Based on the provided static image and its "
    "description, produce a succinct edit prompt that the edit model can follow (color "
    "grading, removal/addition of elements, style tweaks, lighting, crop, retouch, etc.). "
    "Respond ONLY with a single paragraph containing the suggested edit prompt."
)

_JSON_ONLY = (
    "Respond ONLY with the JSON array of objects as defined in the schema. "
    "Do not add any extra text, markdown, or explanations."
)

STYLE_PREVIEW_COUNT = 4


def chat_instruction(workflow: Workflow) -> str:
    return (
        "You are a creative art director guru for StoryBoard, an AI music video "
        "storyboarder. Your role is to be a creative partner, helping users brainstorm and "
        "refine their ideas before they generate storyboard scenes. Guide them to formulate "
        "well-crafted, production-grade concepts and themes. Ask clarifying questions and "
        "offer evocative suggestions. The user is currently thinking about a project in the "
        f"style of {workflow.name}. Tailor your creative advice to this use case. Engage in a "
        "natural, inspiring conversation."
    )


def storyboard_instruction(
    workflow: Workflow,
    scene_count: int,
    style_names: Sequence[str] = (),
    template_prompts: Sequence[str] = (),
) -> str:
    styles = (
        f" The user has also selected these style presets: {', '.join(style_names)}."
        if style_names
        else ""
    )
    templates = (
        f" The user has also selected these visual style templates: {' '.join(template_prompts)}."
        if template_prompts
        else ""
    )
    return (
        f"{workflow.system_instruction} Generate exactly {scene_count} scenes. Influenced by "
        f"the reference image if provided.{styles}{templates} {_JSON_ONLY}"
    )


def enhanced_storyboard_instruction(workflow: Workflow, scene_count: int) -> str:
    return (
        f"{workflow.system_instruction} Generate exactly {scene_count} scenes with complete "
        "details for each scene including:\n"
        "- A concise, visually descriptive scene description\n"
        f"- A detailed image generation prompt incorporating the art style: {workflow.art_style}\n"
        "- An animation/video prompt describing camera movement and scene dynamics\n"
        "- Metadata including duration (in seconds), camera movement, lighting, and mood\n\n"
        "Ensure each scene builds on the previous one to create a cohesive storyboard. The "
        "animation prompts should describe subtle movements, camera motion, and atmospheric "
        "effects that bring each scene to life cinematically. "
        f"{_JSON_ONLY}"
    )


def style_preview_instruction(workflow: Workflow) -> str:
    return (
        f"{workflow.system_instruction}\n\n"
        f"Your task is to generate exactly {STYLE_PREVIEW_COUNT} diverse style preview scenes "
        "that represent different visual directions for the user's concept. Each preview "
        "should showcase a distinct style approach while staying true to the concept and the "
        f"{workflow.name} genre.\n\n"
        f"The {STYLE_PREVIEW_COUNT} style directions should be meaningfully different from "
        "each other, exploring variations in:\n"
        "- Mood and atmosphere (e.g., dark vs bright, energetic vs calm)\n"
        "- Color palette (e.g., warm vs cool, saturated vs muted)\n"
        "- Visual style (e.g., realistic vs stylized, minimal vs detailed)\n\n"
        f"Base art style reference: {workflow.art_style}\n\n"
        "For each preview, provide:\n"
        "- A scene description that represents this style direction\n"
        "- A detailed image generation prompt incorporating the specific style\n"
        "- A clear name for the style direction\n"
        "- Metadata describing the mood, color palette, and visual style\n\n"
        f"Respond ONLY with the JSON array of exactly {STYLE_PREVIEW_COUNT} objects as defined "
        "in the schema. Do not add any extra text, markdown, or explanations."
    )


def image_prompt(
    workflow: Workflow, description: str, style_prompts: Sequence[str] = ()
) -> str:
    return f"{description}. {workflow.art_style} {' '.join(style_prompts)}".strip()


def _string(description: str) -> dict[str, Any]:
    return {"type": "STRING", "description": description}


STORYBOARD_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "description": _string("A concise, visually descriptive scene for the storyboard."),
        },
        "required": ["description"],
    },
}

ENHANCED_STORYBOARD_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "description": _string("A concise, visually descriptive scene for the storyboard."),
            "imagePrompt": _string("A detailed prompt for generating the scene image."),
            "animationPrompt": _string("A detailed prompt for animating the scene into video."),
            "metadata": {
                "type": "OBJECT",
                "properties": {
                    "duration": {
                        "type": "NUMBER",
                        "description": "Scene duration in seconds (typically 3-10 seconds).",
                    },
                    "cameraMovement": _string(
                        "Camera movement description (e.g., 'slow pan left', 'zoom in', 'static')."
                    ),
                    "lighting": _string(
                        "Lighting description (e.g., 'warm golden hour', 'dramatic shadows', "
                        "'soft diffused')."
                    ),
                    "mood": _string(
                        "Overall mood or atmosphere (e.g., 'energetic', 'melancholic', 'mysterious')."
                    ),
                },
                "required": ["duration"],
            },
        },
        "required": ["description", "imagePrompt", "animationPrompt", "metadata"],
    },
}

STYLE_PREVIEW_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "description": _string(
                "A concise, visually descriptive scene representing this style direction."
            ),
            "imagePrompt": _string(
                "A detailed prompt for generating the scene image in this style."
            ),
            "styleDirection": _string(
                "A name for this style direction (e.g., 'Dark & Moody', 'Bright & Energetic')."
            ),
            "metadata": {
                "type": "OBJECT",
                "properties": {
                    "mood": _string("Overall mood or atmosphere of this style."),
                    "colorPalette": _string("Description of the color palette used in this style."),
                    "visualStyle": _string("Description of the visual aesthetic and techniques."),
                },
            },
        },
        "required": ["description", "imagePrompt", "styleDirection", "metadata"],
    },
}
