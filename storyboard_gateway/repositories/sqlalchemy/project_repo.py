"""
Project Repository SQLAlchemy Implementation
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storyboard_gateway.common.utils import ensure_utc
from storyboard_gateway.db.models import Project as ProjectORM
from storyboard_gateway.db.models import Scene as SceneORM
from storyboard_gateway.domain.project import Project, Scene, SceneUpdate
from storyboard_gateway.repositories.project_repo import ProjectRepository


class SQLAlchemyProjectRepository(ProjectRepository):
    """
    Project Repository SQLAlchemy Implementation

    Uses SQLAlchemy ORM to implement database operations for projects and scenes.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize Repository

        Args:
            session: Async database session
        """
        self.session = session

    def _project_to_domain(self, entity: ProjectORM) -> Project:
        return Project(
            id=entity.id,
            name=entity.name,
            description=entity.description,
            created_at=ensure_utc(entity.created_at),
            updated_at=ensure_utc(entity.updated_at),
        )

    def _scene_to_domain(self, entity: SceneORM) -> Scene:
        """
        Convert ORM entity to domain model

        Args:
            entity: ORM entity

        Returns:
            Scene: Domain model
        """
        return Scene(
            id=entity.id,
            project_id=entity.project_id,
            description=entity.description,
            aspect_ratio=entity.aspect_ratio,
            order_index=entity.order_index,
            duration=entity.duration,
            primary_image_asset_id=entity.primary_image_asset_id,
            primary_video_asset_id=entity.primary_video_asset_id,
            created_at=ensure_utc(entity.created_at),
            updated_at=ensure_utc(entity.updated_at),
        )

    async def create_project(self, name: str, description: Optional[str] = None) -> Project:
        """Create Project"""
        entity = ProjectORM(name=name, description=description)
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return self._project_to_domain(entity)

    async def get_project(self, project_id: str) -> Optional[Project]:
        """Get Project by ID"""
        result = await self.session.execute(
            select(ProjectORM).where(ProjectORM.id == project_id)
        )
        entity = result.scalar_one_or_none()
        return self._project_to_domain(entity) if entity else None

    async def create_scene(
        self,
        project_id: str,
        description: str,
        aspect_ratio: str = "16:9",
        order_index: Optional[int] = None,
        duration: Optional[float] = None,
    ) -> Scene:
        """Create Scene"""
        if order_index is None:
            result = await self.session.execute(
                select(func.count()).select_from(SceneORM).where(SceneORM.project_id == project_id)
            )
            order_index = result.scalar() or 0

        entity = SceneORM(
            project_id=project_id,
            description=description,
            aspect_ratio=aspect_ratio,
            order_index=order_index,
            duration=duration,
        )
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return self._scene_to_domain(entity)

    async def _get_scene_entity(self, project_id: str, scene_id: str) -> Optional[SceneORM]:
        result = await self.session.execute(
            select(SceneORM).where(
                SceneORM.id == scene_id,
                SceneORM.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_scene(self, project_id: str, scene_id: str) -> Optional[Scene]:
        """Get Scene by ID"""
        entity = await self._get_scene_entity(project_id, scene_id)
        return self._scene_to_domain(entity) if entity else None

    async def update_scene(
        self, project_id: str, scene_id: str, data: SceneUpdate
    ) -> Optional[Scene]:
        """Update Scene"""
        entity = await self._get_scene_entity(project_id, scene_id)
        if not entity:
            return None

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(entity, key, value)

        await self.session.commit()
        await self.session.refresh(entity)
        return self._scene_to_domain(entity)
