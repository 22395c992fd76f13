"""
Asset Repository SQLAlchemy Implementation
"""

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storyboard_gateway.common.utils import ensure_utc
from storyboard_gateway.db.models import Asset as AssetORM
from storyboard_gateway.domain.asset import Asset, AssetCreate
from storyboard_gateway.repositories.asset_repo import AssetRepository


class SQLAlchemyAssetRepository(AssetRepository):
    """Asset Repository SQLAlchemy Implementation"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_domain(self, entity: AssetORM) -> Asset:
        return Asset(
            id=entity.id,
            project_id=entity.project_id,
            scene_id=entity.scene_id,
            type=entity.type,
            mime_type=entity.mime_type,
            file_name=entity.file_name,
            file_path=entity.file_path,
            size=entity.size,
            checksum=entity.checksum,
            metadata=entity.asset_metadata,
            created_at=ensure_utc(entity.created_at),
        )

    async def create(self, data: AssetCreate) -> Asset:
        """Create Asset"""
        entity = AssetORM(
            project_id=data.project_id,
            scene_id=data.scene_id,
            type=data.type,
            mime_type=data.mime_type,
            file_name=data.file_name,
            file_path=data.file_path,
            size=data.size,
            checksum=data.checksum,
            asset_metadata=data.metadata,
        )
        self.session.add(entity)
        await self.session.commit()
        await self.session.refresh(entity)
        return self._to_domain(entity)

    async def get_by_id(self, asset_id: str) -> Optional[Asset]:
        """Get Asset by ID"""
        result = await self.session.execute(
            select(AssetORM).where(AssetORM.id == asset_id)
        )
        entity = result.scalar_one_or_none()
        return self._to_domain(entity) if entity else None

    async def get_by_ids(self, asset_ids: Sequence[str]) -> list[Asset]:
        """Get Assets by IDs"""
        if not asset_ids:
            return []
        result = await self.session.execute(
            select(AssetORM).where(AssetORM.id.in_(list(asset_ids)))
        )
        return [self._to_domain(e) for e in result.scalars().all()]
