"""
AI Request Domain Model

Request bodies accepted by the /api/ai endpoints. Field names are camelCase
on the wire and snake_case in Python.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Reference image and extension limits shared with the capability validators
MAX_REFERENCE_IMAGES = 3
MIN_EXTENSION_COUNT = 1
MAX_EXTENSION_COUNT = 20

WorkflowKey = Literal["music-video", "product-commercial", "viral-social", "explainer-video"]

ChatModel = Literal[
    "gemini-2.5-pro",
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-3-pro-image-preview",
]

ImageModel = Literal[
    "imagen-4.0-generate-001",
    "imagen-4.0-ultra-generate-001",
    "imagen-4.0-fast-generate-001",
    "imagen-3.0-generate-002",
    "gemini-2.5-flash-image",
    "gemini-3-pro-image-preview",
]

VideoModel = Literal[
    "veo-3.1-generate-preview",
    "veo-3.1-fast-generate-preview",
    "veo-3.0-generate-001",
    "veo-3.0-fast-generate-001",
    "veo-2.0-generate-001",
]

AspectRatio = Literal["16:9", "9:16", "1:1"]
Resolution = Literal["1080p", "720p"]

DEFAULT_VIDEO_MODEL = "veo-3.1-generate-preview"


class CamelModel(BaseModel):
    """Base model accepting both camelCase aliases and field names"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InlineImage(CamelModel):
    """Base64 image payload"""

    data: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)


class MediaPayload(CamelModel):
    """Base64 media payload without length constraints"""

    data: str
    mime_type: str


class ChatHistoryEntry(CamelModel):
    role: Literal["user", "model"]
    text: str = Field(..., min_length=1)


class AiChatRequest(CamelModel):
    """Chat / chat stream request"""

    prompt: str = Field(..., min_length=1)
    history: list[ChatHistoryEntry] = Field(default_factory=list)
    image: Optional[InlineImage] = None
    chat_model: ChatModel
    workflow: WorkflowKey
    thinking_mode: bool = False
    entry_point: Optional[str] = Field(None, min_length=1, max_length=64)


class AiStoryboardRequest(CamelModel):
    concept: str = Field(..., min_length=1)
    image: Optional[InlineImage] = None
    style_names: list[str] = Field(default_factory=list)
    template_ids: list[str] = Field(default_factory=list)
    scene_count: int = Field(..., gt=0, le=20)
    workflow: WorkflowKey
    entry_point: Optional[str] = Field(None, min_length=1, max_length=64)


class AiEnhancedStoryboardRequest(CamelModel):
    concept: str = Field(..., min_length=1)
    scene_count: int = Field(..., gt=0, le=20)
    workflow: WorkflowKey
    system_instruction: Optional[str] = None
    entry_point: Optional[str] = Field(None, min_length=1, max_length=64)


class AiPreviewStylesRequest(CamelModel):
    concept: str = Field(..., min_length=1)
    workflow: WorkflowKey
    entry_point: Optional[str] = Field(None, min_length=1, max_length=64)


class AiRegenerateDescriptionRequest(CamelModel):
    description: str = Field(..., min_length=1)


class AiSceneRefRequest(CamelModel):
    """Identifies one scene; used by the image-edit-prompt and video-prompt endpoints"""

    project_id: str = Field(..., min_length=1)
    scene_id: str = Field(..., min_length=1)


class AiGenerateImageRequest(AiSceneRefRequest):
    description: str = Field(..., min_length=1)
    aspect_ratio: AspectRatio
    style_prompts: list[str] = Field(default_factory=list)
    template_ids: Optional[list[str]] = None
    image_model: ImageModel
    workflow: WorkflowKey
    thinking_mode: bool = False


class AiEditImageRequest(AiSceneRefRequest):
    prompt: str = Field(..., min_length=1)


class AiGenerateVideoRequest(AiSceneRefRequest):
    prompt: str = Field(..., min_length=1)
    model: VideoModel = DEFAULT_VIDEO_MODEL
    aspect_ratio: AspectRatio
    resolution: Optional[Resolution] = None
    duration: Optional[int] = Field(None, ge=4, le=8)
    reference_images: Optional[list[MediaPayload]] = Field(
        None, max_length=MAX_REFERENCE_IMAGES
    )
    last_frame: Optional[MediaPayload] = None


class AiExtendVideoRequest(AiSceneRefRequest):
    prompt: str = Field(..., min_length=1)
    model: VideoModel = DEFAULT_VIDEO_MODEL
    extension_count: int = Field(1, ge=MIN_EXTENSION_COUNT, le=MAX_EXTENSION_COUNT)


class AiRegenerateSceneRequest(CamelModel):
    project_id: str = Field(..., min_length=1)


class AiVideoPreflightRequest(CamelModel):
    """Parameter set checked against the capability matrix without submitting"""

    model: VideoModel = DEFAULT_VIDEO_MODEL
    aspect_ratio: AspectRatio
    resolution: Optional[Resolution] = None
    duration: Optional[int] = Field(None, ge=4, le=8)
    reference_image_count: int = Field(0, ge=0)
    has_last_frame: bool = False
