"""
Style Template Domain Model
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StyleTemplate(BaseModel):
    """Style Template Complete Model"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    name: str
    category: Optional[str] = None
    style_prompt: str
    created_at: datetime
