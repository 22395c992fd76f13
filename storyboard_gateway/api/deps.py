"""
API Dependency Injection Module

Provides dependencies required for FastAPI routes.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from storyboard_gateway.db.session import get_db as _get_db
from storyboard_gateway.providers.factory import get_client_provider
from storyboard_gateway.repositories.sqlalchemy import (
    SQLAlchemyAssetRepository,
    SQLAlchemyProjectRepository,
    SQLAlchemyTemplateRepository,
)
from storyboard_gateway.services.asset_service import AssetService, LocalAssetStorage
from storyboard_gateway.services.generation_service import GenerationService
from storyboard_gateway.services.telemetry import AiTelemetryLogger, get_telemetry_logger


async def get_db():
    """
    Get database session dependency

    Yields:
        AsyncSession: Async database session
    """
    async for session in _get_db():
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]


# ============ Global Singletons ============

_generation_service: Optional[GenerationService] = None


# ============ Repository Dependencies ============

def get_template_repo(db: DbSession) -> SQLAlchemyTemplateRepository:
    """Get Style Template Repository"""
    return SQLAlchemyTemplateRepository(db)


# ============ Service Dependencies ============

def get_asset_service(db: DbSession) -> AssetService:
    """Get Asset Service"""
    return AssetService(
        SQLAlchemyProjectRepository(db),
        SQLAlchemyAssetRepository(db),
        LocalAssetStorage(),
    )


def get_generation_service() -> GenerationService:
    """Get Generation Service (shared, owns no per-request state)"""
    global _generation_service
    if _generation_service is None:
        _generation_service = GenerationService(get_client_provider())
    return _generation_service


def get_telemetry() -> AiTelemetryLogger:
    """Get AI Telemetry Logger"""
    return get_telemetry_logger()


# ============ Credential Dependencies ============

def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


async def get_caller_api_key(
    authorization: str = Header(None, description="Bearer <Gemini API key>"),
    x_goog_api_key: str = Header(None, description="Gemini API key", alias="x-goog-api-key"),
) -> Optional[str]:
    """
    Caller supplied Gemini credential

    Optional: without one the server GEMINI_API_KEY is used.
    """
    return _extract_bearer_token(authorization) or (x_goog_api_key or "").strip() or None


# ============ Type Aliases ============

TemplateRepoDep = Annotated[SQLAlchemyTemplateRepository, Depends(get_template_repo)]
AssetServiceDep = Annotated[AssetService, Depends(get_asset_service)]
GenerationServiceDep = Annotated[GenerationService, Depends(get_generation_service)]
TelemetryDep = Annotated[AiTelemetryLogger, Depends(get_telemetry)]
CallerApiKey = Annotated[Optional[str], Depends(get_caller_api_key)]
