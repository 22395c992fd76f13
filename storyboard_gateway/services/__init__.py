"""
Service Layer Module Initialization
"""

from storyboard_gateway.services.video_jobs import VideoJobRunner
from storyboard_gateway.services.generation_service import GenerationService
from storyboard_gateway.services.asset_service import AssetService, LocalAssetStorage
from storyboard_gateway.services.telemetry import AiTelemetryLogger

__all__ = [
    "VideoJobRunner",
    "GenerationService",
    "AssetService",
    "LocalAssetStorage",
    "AiTelemetryLogger",
]
