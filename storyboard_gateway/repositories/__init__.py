"""
Data Access Layer Module Initialization
"""

from storyboard_gateway.repositories.asset_repo import AssetRepository
from storyboard_gateway.repositories.project_repo import ProjectRepository
from storyboard_gateway.repositories.template_repo import TemplateRepository

__all__ = [
    "AssetRepository",
    "ProjectRepository",
    "TemplateRepository",
]
