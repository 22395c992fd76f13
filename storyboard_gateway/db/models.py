"""
SQLAlchemy ORM Model Definitions

Tables the gateway reads and writes:
- projects: Storyboard projects
- scenes: Scenes of a project with their primary image/video asset
- assets: Generated media files stored under DATA_DIR
- style_templates: Reusable visual style prompts
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from storyboard_gateway.common.utils import utc_now


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy ORM Base Class"""
    pass


class Project(Base):
    """
    Projects Table

    A storyboard project owning scenes and assets.
    """
    __tablename__ = "projects"

    # Primary Key (UUID string)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Project Name
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Project Description
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Creation Time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    # Update Time
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    # Relationship: Scenes of this project
    scenes: Mapped[list["Scene"]] = relationship(
        "Scene", back_populates="project", cascade="all, delete-orphan"
    )


class Scene(Base):
    """
    Scenes Table

    One storyboard card. primary_image_asset_id / primary_video_asset_id point
    at the asset currently shown for the scene.
    """
    __tablename__ = "scenes"

    # Primary Key (UUID string)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Owning Project
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    # Scene Description
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Aspect Ratio: 16:9 / 9:16 / 1:1
    aspect_ratio: Mapped[str] = mapped_column(String(10), nullable=False, default="16:9")
    # Position in the storyboard
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Planned duration in seconds
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    # Current image asset
    primary_image_asset_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # Current video asset
    primary_video_asset_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # Creation Time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    # Update Time
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    # Relationship: Owning project
    project: Mapped["Project"] = relationship("Project", back_populates="scenes")

    __table_args__ = (
        Index("idx_scenes_project_order", "project_id", "order_index"),
    )


class Asset(Base):
    """
    Assets Table

    A media file written to local storage. ``metadata`` records how the file
    was produced (source, model, duration, previous asset).
    """
    __tablename__ = "assets"

    # Primary Key (UUID string)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Owning Project
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    # Scene the asset was generated for
    scene_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # Asset type: image / video
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    # MIME type
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    # Stored file name
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Absolute or DATA_DIR-relative file path
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    # Size in bytes
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # sha256 hex digest of the content
    checksum: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # Generation metadata (JSON format); "metadata" is reserved on the declarative base
    asset_metadata: Mapped[Optional[dict]] = mapped_column("metadata", SQLiteJSON, nullable=True)
    # Creation Time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("idx_assets_project", "project_id"),
        Index("idx_assets_scene", "scene_id"),
    )


class StyleTemplate(Base):
    """
    Style Templates Table

    Named style prompts that storyboard and image requests can reference by id.
    """
    __tablename__ = "style_templates"

    # Primary Key (UUID string)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # Template Name
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Category, e.g. cinematic / animation
    category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # Prompt fragment appended to generation prompts
    style_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    # Creation Time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
