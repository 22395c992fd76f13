"""
Project Domain Model

Projects and scenes as the gateway sees them.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Project(BaseModel):
    """Project Complete Model"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Scene(BaseModel):
    """Scene Complete Model"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    project_id: str
    description: str
    aspect_ratio: str = "16:9"
    order_index: int = 0
    duration: Optional[float] = None
    primary_image_asset_id: Optional[str] = None
    primary_video_asset_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SceneUpdate(BaseModel):
    """
    Update Scene Model

    Only fields that are explicitly set are written, so ``None`` clears an
    asset reference while an omitted field leaves it untouched.
    """

    description: Optional[str] = Field(None, min_length=1)
    aspect_ratio: Optional[str] = None
    primary_image_asset_id: Optional[str] = None
    primary_video_asset_id: Optional[str] = None
    duration: Optional[float] = None


class SceneView(Scene):
    """Scene enriched with public asset URLs"""

    image_url: Optional[str] = None
    video_url: Optional[str] = None
    image_status: str = "absent"
    video_status: str = "absent"
