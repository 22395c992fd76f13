"""
Asset Repository Interface
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from storyboard_gateway.domain.asset import Asset, AssetCreate


class AssetRepository(ABC):
    """Asset Repository Interface"""

    @abstractmethod
    async def create(self, data: AssetCreate) -> Asset:
        """Create Asset"""
        pass

    @abstractmethod
    async def get_by_id(self, asset_id: str) -> Optional[Asset]:
        """Get Asset by ID"""
        pass

    @abstractmethod
    async def get_by_ids(self, asset_ids: Sequence[str]) -> list[Asset]:
        """Get Assets by IDs, missing ids are skipped"""
        pass
