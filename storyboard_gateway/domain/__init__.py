"""
Domain Model Module Initialization
"""

from storyboard_gateway.domain.ai import (
    AiChatRequest,
    AiEditImageRequest,
    AiEnhancedStoryboardRequest,
    AiExtendVideoRequest,
    AiGenerateImageRequest,
    AiGenerateVideoRequest,
    AiPreviewStylesRequest,
    AiRegenerateDescriptionRequest,
    AiRegenerateSceneRequest,
    AiSceneRefRequest,
    AiStoryboardRequest,
    AiVideoPreflightRequest,
    ChatHistoryEntry,
    InlineImage,
    MediaPayload,
)
from storyboard_gateway.domain.asset import Asset, AssetCreate
from storyboard_gateway.domain.project import Project, Scene, SceneUpdate, SceneView
from storyboard_gateway.domain.template import StyleTemplate

__all__ = [
    "AiChatRequest",
    "AiEditImageRequest",
    "AiEnhancedStoryboardRequest",
    "AiExtendVideoRequest",
    "AiGenerateImageRequest",
    "AiGenerateVideoRequest",
    "AiPreviewStylesRequest",
    "AiRegenerateDescriptionRequest",
    "AiRegenerateSceneRequest",
    "AiSceneRefRequest",
    "AiStoryboardRequest",
    "AiVideoPreflightRequest",
    "ChatHistoryEntry",
    "InlineImage",
    "MediaPayload",
    "Asset",
    "AssetCreate",
    "Project",
    "Scene",
    "SceneUpdate",
    "SceneView",
    "StyleTemplate",
]
