"""
SQLAlchemy Repository Implementation Module Initialization
"""

from storyboard_gateway.repositories.sqlalchemy.asset_repo import SQLAlchemyAssetRepository
from storyboard_gateway.repositories.sqlalchemy.project_repo import SQLAlchemyProjectRepository
from storyboard_gateway.repositories.sqlalchemy.template_repo import SQLAlchemyTemplateRepository

__all__ = [
    "SQLAlchemyAssetRepository",
    "SQLAlchemyProjectRepository",
    "SQLAlchemyTemplateRepository",
]
