"""
Project Repository Interface

Defines the data access interface for projects and their scenes.
"""

from abc import ABC, abstractmethod
from typing import Optional

from storyboard_gateway.domain.project import Project, Scene, SceneUpdate


class ProjectRepository(ABC):
    """Project Repository Interface"""

    @abstractmethod
    async def create_project(self, name: str, description: Optional[str] = None) -> Project:
        """Create Project"""
        pass

    @abstractmethod
    async def get_project(self, project_id: str) -> Optional[Project]:
        """Get Project by ID"""
        pass

    @abstractmethod
    async def create_scene(
        self,
        project_id: str,
        description: str,
        aspect_ratio: str = "16:9",
        order_index: Optional[int] = None,
        duration: Optional[float] = None,
    ) -> Scene:
        """Create Scene at the end of the project unless order_index is given"""
        pass

    @abstractmethod
    async def get_scene(self, project_id: str, scene_id: str) -> Optional[Scene]:
        """Get Scene by ID within a project"""
        pass

    @abstractmethod
    async def update_scene(
        self, project_id: str, scene_id: str, data: SceneUpdate
    ) -> Optional[Scene]:
        """Update Scene; only explicitly set fields are written"""
        pass
