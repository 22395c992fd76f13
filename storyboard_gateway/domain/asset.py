"""
Asset Domain Model
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AssetType = Literal["image", "video"]


class AssetCreate(BaseModel):
    """Create Asset Model"""

    project_id: str
    scene_id: Optional[str] = None
    type: AssetType
    mime_type: str
    file_name: str
    file_path: str
    size: int = Field(0, ge=0)
    checksum: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class Asset(AssetCreate):
    """Asset Complete Model"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    created_at: datetime
