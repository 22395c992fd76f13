"""
Style Template Repository SQLAlchemy Implementation
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storyboard_gateway.common.utils import ensure_utc
from storyboard_gateway.db.models import StyleTemplate as StyleTemplateORM
from storyboard_gateway.domain.template import StyleTemplate
from storyboard_gateway.repositories.template_repo import TemplateRepository


class SQLAlchemyTemplateRepository(TemplateRepository):
    """Style Template Repository SQLAlchemy Implementation"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, entity: StyleTemplateORM) -> StyleTemplate:
        return StyleTemplate(
            id=entity.id,
            name=entity.name,
            category=entity.category,
            style_prompt=entity.style_prompt,
            created_at=ensure_utc(entity.created_at),
        )

    async def create(
        self, name: str, style_prompt: str, category: Optional[str] = None
    ) -> StyleTemplate:
        """Create Style Template"""
        entity = StyleTemplateORM(name=name, style_prompt=style_prompt, category=category)
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return self._to_domain(entity)

    async def get_by_id(self, template_id: str) -> Optional[StyleTemplate]:
        """Get Style Template by ID"""
        result = await self.session.execute(
            select(StyleTemplateORM).where(StyleTemplateORM.id == template_id)
        )
        entity = result.scalar_one_or_none()
        return self._to_domain(entity) if entity else None
