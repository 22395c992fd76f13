"""
Database Module Initialization
"""

from storyboard_gateway.db.session import get_db, init_db, AsyncSessionLocal
from storyboard_gateway.db.models import (
    Base,
    Project,
    Scene,
    Asset,
    StyleTemplate,
)

__all__ = [
    "get_db",
    "init_db",
    "AsyncSessionLocal",
    "Base",
    "Project",
    "Scene",
    "Asset",
    "StyleTemplate",
]
