"""
Asset Service Unit Tests
"""

import base64

import anyio
import pytest

from storyboard_gateway.common.errors import DependencyNotFoundError
from storyboard_gateway.repositories.sqlalchemy import (
    SQLAlchemyAssetRepository,
    SQLAlchemyProjectRepository,
)
from storyboard_gateway.services.asset_service import (
    AssetService,
    LocalAssetStorage,
    sanitize_file_name,
)


@pytest.fixture
def asset_service(db_session, tmp_path):
    return AssetService(
        SQLAlchemyProjectRepository(db_session),
        SQLAlchemyAssetRepository(db_session),
        LocalAssetStorage(str(tmp_path)),
    )


def test_sanitize_file_name():
    assert sanitize_file_name("../../etc/passwd") == "passwd"
    assert sanitize_file_name("my scene (final).png") == "my-scene-final-.png"
    assert sanitize_file_name("C:\\clips\\take 1.mp4") == "take-1.mp4"


class TestLookups:
    """require_project / require_scene / require_asset"""

    @pytest.mark.asyncio
    async def test_missing_records(self, asset_service):
        with pytest.raises(DependencyNotFoundError) as exc_info:
            await asset_service.require_project("missing")
        assert exc_info.value.code == "PROJECT_NOT_FOUND"
        assert exc_info.value.status_code == 404

        with pytest.raises(DependencyNotFoundError) as exc_info:
            await asset_service.require_scene("missing", "scene")
        assert exc_info.value.code == "SCENE_NOT_FOUND"

        with pytest.raises(DependencyNotFoundError, match="Image asset not found."):
            await asset_service.require_asset("missing", "IMAGE_ASSET_NOT_FOUND", "Image asset not found.")


class TestPersistAsset:
    """persist_asset / read_asset_base64"""

    @pytest.mark.asyncio
    async def test_persist_image_updates_scene(self, asset_service, tmp_path):
        """A persisted image becomes the scene's primary image."""
        project = await asset_service.project_repo.create_project("P")
        scene = await asset_service.project_repo.create_scene(project.id, "Opening")

        asset = await asset_service.persist_asset(
            project.id, scene.id, "image", "image/png", b"png-bytes", metadata={"source": "ai-image"}
        )

        assert asset.file_name.endswith(".png")
        assert asset.size == 9
        assert asset.checksum and len(asset.checksum) == 64
        assert await anyio.Path(asset.file_path).read_bytes() == b"png-bytes"
        assert str(tmp_path) in asset.file_path

        refreshed = await asset_service.project_repo.get_scene(project.id, scene.id)
        assert refreshed.primary_image_asset_id == asset.id
        assert refreshed.primary_video_asset_id is None

    @pytest.mark.asyncio
    async def test_persist_video_with_file_name(self, asset_service):
        project = await asset_service.project_repo.create_project("P")
        scene = await asset_service.project_repo.create_scene(project.id, "Opening")

        asset = await asset_service.persist_asset(
            project.id, scene.id, "video", "video/mp4", b"mp4", file_name="take 1"
        )

        refreshed = await asset_service.project_repo.get_scene(project.id, scene.id)
        assert asset.file_name == "take-1.mp4"
        assert refreshed.primary_video_asset_id == asset.id

    @pytest.mark.asyncio
    async def test_read_asset_base64(self, asset_service):
        project = await asset_service.project_repo.create_project("P")
        asset = await asset_service.persist_asset(project.id, None, "image", "image/jpeg", b"jpeg")

        media = await asset_service.read_asset_base64(asset)

        assert media.mime_type == "image/jpeg"
        assert base64.b64decode(media.data) == b"jpeg"

    @pytest.mark.asyncio
    async def test_read_missing_file(self, asset_service):
        project = await asset_service.project_repo.create_project("P")
        asset = await asset_service.persist_asset(project.id, None, "image", "image/png", b"png")
        await anyio.Path(asset.file_path).unlink()

        with pytest.raises(DependencyNotFoundError) as exc_info:
            await asset_service.read_asset_base64(asset)

        assert exc_info.value.code == "ASSET_FILE_MISSING"


class TestEnrichScene:
    """enrich_scene"""

    @pytest.mark.asyncio
    async def test_ready_assets_get_urls(self, asset_service):
        project = await asset_service.project_repo.create_project("P")
        scene = await asset_service.project_repo.create_scene(project.id, "Opening")
        image = await asset_service.persist_asset(project.id, scene.id, "image", "image/png", b"png")
        scene = await asset_service.project_repo.get_scene(project.id, scene.id)

        view = await asset_service.enrich_scene(scene)

        assert view.image_url == f"/api/assets/files/{project.id}/{image.file_name}"
        assert view.image_status == "ready"
        assert view.video_url is None
        assert view.video_status == "absent"

    @pytest.mark.asyncio
    async def test_missing_assets_are_pruned(self, asset_service):
        """References to deleted records or files are cleared on the scene."""
        project = await asset_service.project_repo.create_project("P")
        scene = await asset_service.project_repo.create_scene(project.id, "Opening")
        image = await asset_service.persist_asset(project.id, scene.id, "image", "image/png", b"png")
        await asset_service.persist_asset(project.id, scene.id, "video", "video/mp4", b"mp4")
        await anyio.Path(image.file_path).unlink()
        scene = await asset_service.project_repo.get_scene(project.id, scene.id)

        view = await asset_service.enrich_scene(scene)

        assert view.image_status == "missing"
        assert view.image_url is None
        assert view.primary_image_asset_id is None
        assert view.video_status == "ready"

        stored = await asset_service.project_repo.get_scene(project.id, scene.id)
        assert stored.primary_image_asset_id is None
        assert stored.primary_video_asset_id is not None
