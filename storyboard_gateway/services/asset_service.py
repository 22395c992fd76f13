"""
Asset Service Module

Resolves the records a generation request refers to, loads source media
from local storage, persists generated media, and decorates scenes with
public asset URLs.
"""

import base64
import hashlib
import logging
import random
import re
from typing import Any, Optional

import anyio

from storyboard_gateway.common.errors import DependencyNotFoundError
from storyboard_gateway.common.media import extension_for_mime_type, mime_type_for_path
from storyboard_gateway.common.utils import epoch_ms
from storyboard_gateway.config import get_settings
from storyboard_gateway.domain.asset import Asset, AssetCreate, AssetType
from storyboard_gateway.domain.project import Project, Scene, SceneUpdate, SceneView
from storyboard_gateway.repositories.asset_repo import AssetRepository
from storyboard_gateway.repositories.project_repo import ProjectRepository
from storyboard_gateway.services.generation_service import InlineMedia

logger = logging.getLogger(__name__)

PUBLIC_ASSET_PREFIX = "/api/assets/files"
_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_file_name(file_name: str) -> str:
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = re.sub(r"-+", "-", _UNSAFE_FILE_CHARS.sub("-", base))[:128]
    return cleaned or f"asset-{epoch_ms()}"


class LocalAssetStorage:
    """
    Blob store rooted at ``{DATA_DIR}/assets``

    Files live in one directory per project. All I/O goes through
    ``anyio.Path`` so reads and writes never block the event loop.
    """

    def __init__(self, data_dir: Optional[str] = None):
        self.root = anyio.Path(data_dir or get_settings().DATA_DIR) / "assets"

    async def write(self, project_id: str, file_name: str, data: bytes) -> str:
        project_dir = self.root / sanitize_file_name(project_id)
        await project_dir.mkdir(parents=True, exist_ok=True)
        target = project_dir / file_name
        await target.write_bytes(data)
        return str(target)

    async def read(self, file_path: str) -> bytes:
        return await anyio.Path(file_path).read_bytes()

    async def exists(self, file_path: str) -> bool:
        return await anyio.Path(file_path).is_file()


class AssetService:
    """
    Asset Service

    Args:
        project_repo: Project and scene repository
        asset_repo: Asset repository
        storage: Blob store for asset files
    """

    def __init__(
        self,
        project_repo: ProjectRepository,
        asset_repo: AssetRepository,
        storage: Optional[LocalAssetStorage] = None,
    ):
        self.project_repo = project_repo
        self.asset_repo = asset_repo
        self.storage = storage or LocalAssetStorage()

    # ===== Lookups =====

    async def require_project(self, project_id: str) -> Project:
        project = await self.project_repo.get_project(project_id)
        if project is None:
            raise DependencyNotFoundError(
                "Project not found", code="PROJECT_NOT_FOUND", details={"projectId": project_id}
            )
        return project

    async def require_scene(self, project_id: str, scene_id: str) -> Scene:
        scene = await self.project_repo.get_scene(project_id, scene_id)
        if scene is None:
            raise DependencyNotFoundError(
                "Scene not found", code="SCENE_NOT_FOUND", details={"sceneId": scene_id}
            )
        return scene

    async def require_asset(self, asset_id: str, code: str, message: str) -> Asset:
        asset = await self.asset_repo.get_by_id(asset_id)
        if asset is None:
            raise DependencyNotFoundError(message, code=code, details={"assetId": asset_id})
        return asset

    # ===== Media =====

    async def read_asset_base64(self, asset: Asset) -> InlineMedia:
        """
        Load an asset file as base64 with the MIME type implied by its extension

        Raises:
            DependencyNotFoundError: The file is gone from storage
        """
        try:
            data = await self.storage.read(asset.file_path)
        except FileNotFoundError:
            raise DependencyNotFoundError(
                "Asset file not found",
                code="ASSET_FILE_MISSING",
                details={"assetId": asset.id},
            )
        return InlineMedia(
            data=base64.b64encode(data).decode("ascii"),
            mime_type=mime_type_for_path(asset.file_path),
        )

    async def persist_asset(
        self,
        project_id: str,
        scene_id: Optional[str],
        asset_type: AssetType,
        mime_type: str,
        data: bytes,
        metadata: Optional[dict[str, Any]] = None,
        file_name: Optional[str] = None,
    ) -> Asset:
        """
        Write generated bytes to storage and record the asset

        When a scene is given, its primary image or video is pointed at the
        new asset.
        """
        extension = extension_for_mime_type(mime_type)
        name = sanitize_file_name(file_name) if file_name else (
            f"{epoch_ms()}-{random.randint(0, 1_000_000)}"
        )
        if not name.lower().endswith(f".{extension}"):
            name = f"{name}.{extension}"

        file_path = await self.storage.write(project_id, name, data)
        asset = await self.asset_repo.create(
            AssetCreate(
                project_id=project_id,
                scene_id=scene_id,
                type=asset_type,
                mime_type=mime_type,
                file_name=name,
                file_path=file_path,
                size=len(data),
                checksum=hashlib.sha256(data).hexdigest(),
                metadata=metadata,
            )
        )
        logger.info(
            "Persisted %s asset %s for project %s (%s bytes)",
            asset_type,
            asset.id,
            project_id,
            len(data),
        )

        if scene_id:
            if asset_type == "image":
                update = SceneUpdate(primary_image_asset_id=asset.id)
            else:
                update = SceneUpdate(primary_video_asset_id=asset.id)
            await self.project_repo.update_scene(project_id, scene_id, update)

        return asset

    # ===== Scene enrichment =====

    @staticmethod
    def public_url(asset: Asset) -> str:
        return f"{PUBLIC_ASSET_PREFIX}/{asset.project_id}/{asset.file_name}"

    async def enrich_scene(self, scene: Scene) -> SceneView:
        """
        Decorate a scene with public URLs of its primary assets

        References to assets whose record or file is gone are cleared on the
        scene so later reads stop pointing at them.
        """
        asset_ids = [
            asset_id
            for asset_id in (scene.primary_image_asset_id, scene.primary_video_asset_id)
            if asset_id
        ]
        assets = {asset.id: asset for asset in await self.asset_repo.get_by_ids(asset_ids)}

        view = SceneView(**scene.model_dump())
        pruned: dict[str, None] = {}

        for kind, asset_id in (
            ("image", scene.primary_image_asset_id),
            ("video", scene.primary_video_asset_id),
        ):
            if not asset_id:
                continue
            asset = assets.get(asset_id)
            if asset is not None and await self.storage.exists(asset.file_path):
                setattr(view, f"{kind}_url", self.public_url(asset))
                setattr(view, f"{kind}_status", "ready")
            else:
                setattr(view, f"{kind}_status", "missing")
                setattr(view, f"primary_{kind}_asset_id", None)
                pruned[f"primary_{kind}_asset_id"] = None

        if pruned:
            await self.project_repo.update_scene(scene.project_id, scene.id, SceneUpdate(**pruned))
            logger.warning("Pruned missing asset reference(s) %s for scene %s", list(pruned), scene.id)

        return view
