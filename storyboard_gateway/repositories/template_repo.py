"""
Style Template Repository Interface
"""

from abc import ABC, abstractmethod
from typing import Optional

from storyboard_gateway.domain.template import StyleTemplate


class TemplateRepository(ABC):
    """Style Template Repository Interface"""

    @abstractmethod
    async def create(
        self, name: str, style_prompt: str, category: Optional[str] = None
    ) -> StyleTemplate:
        """Create Style Template"""
        pass

    @abstractmethod
    async def get_by_id(self, template_id: str) -> Optional[StyleTemplate]:
        """Get Style Template by ID"""
        pass
