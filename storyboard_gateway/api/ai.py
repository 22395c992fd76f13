"""
AI Gateway API

Endpoints under /api/ai. Every request gets one request context; its id is
returned in the ``x-request-id`` header and in error bodies, and every
outcome is reported to the telemetry logger.
"""

import json
import logging
import math
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, TypeVar

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from storyboard_gateway.api.deps import (
    AssetServiceDep,
    CallerApiKey,
    DbSession,
    GenerationServiceDep,
    TelemetryDep,
    TemplateRepoDep,
)
from storyboard_gateway.common.errors import (
    GatewayError,
    InternalError,
    PayloadValidationError,
)
from storyboard_gateway.common.request_context import (
    RequestContext,
    activate,
    request_scope,
    update_meta,
)
from storyboard_gateway.common.utils import extract_model, extract_project_id
from storyboard_gateway.config import get_settings
from storyboard_gateway.domain.ai import (
    AiChatRequest,
    AiEditImageRequest,
    AiEnhancedStoryboardRequest,
    AiExtendVideoRequest,
    AiGenerateImageRequest,
    AiGenerateVideoRequest,
    AiPreviewStylesRequest,
    AiRegenerateDescriptionRequest,
    AiRegenerateSceneRequest,
    AiSceneRefRequest,
    AiStoryboardRequest,
    AiVideoPreflightRequest,
)
from storyboard_gateway.domain.asset import Asset, AssetType
from storyboard_gateway.domain.project import Scene, SceneUpdate
from storyboard_gateway.repositories.template_repo import TemplateRepository
from storyboard_gateway.services import video_capabilities as capabilities
from storyboard_gateway.services import workflows
from storyboard_gateway.services.asset_service import AssetService
from storyboard_gateway.services.generation_service import ChatTurn, InlineMedia
from storyboard_gateway.services.telemetry import AiTelemetryLogger, TelemetryEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Gateway"])

REQUEST_ID_HEADER = "x-request-id"

SchemaT = TypeVar("SchemaT", bound=BaseModel)


# ============ Request handling ============

async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise PayloadValidationError(
            "Request body must be valid JSON",
            details={"issues": [{"path": "", "message": "Invalid JSON body"}]},
        )


def _validation_issues(exc: ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "path": ".".join(str(part) for part in issue["loc"]),
            "message": issue["msg"],
            "type": issue["type"],
        }
        for issue in exc.errors(include_url=False)
    ]


def _parse(schema: type[SchemaT], raw: Any) -> SchemaT:
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        raise PayloadValidationError(details={"issues": _validation_issues(e)})


def _as_gateway_error(exc: Exception) -> GatewayError:
    if isinstance(exc, GatewayError):
        return exc
    if isinstance(exc, ValidationError):
        return PayloadValidationError(details={"issues": _validation_issues(exc)})
    message = str(exc) if get_settings().DEBUG and str(exc) else "Internal server error"
    return InternalError(message=message)


def _fail(context: RequestContext, exc: Exception, telemetry: AiTelemetryLogger) -> GatewayError:
    """Classify an exception, stamp it with the request identity and report it"""
    error = _as_gateway_error(exc)
    error.request_id = context.request_id
    if error.entry_point is None:
        error.entry_point = context.meta.entry_point

    if error.status_code >= 500:
        logger.error(
            "AI request %s failed (request %s): %s",
            context.endpoint,
            context.request_id,
            error.message,
            exc_info=exc,
        )
    else:
        logger.info(
            "AI request %s rejected (request %s): %s %s",
            context.endpoint,
            context.request_id,
            error.code,
            error.message,
        )
    telemetry.error(TelemetryEvent.failure(context, error))
    return error


def _error_response(context: RequestContext, error: GatewayError) -> JSONResponse:
    return JSONResponse(
        content=jsonable_encoder(error.to_dict()),
        status_code=error.status_code,
        headers={REQUEST_ID_HEADER: context.request_id},
    )


async def _handle(
    request: Request,
    caller_key: Optional[str],
    telemetry: AiTelemetryLogger,
    schema: Optional[type[SchemaT]],
    operation: Callable[[Any], Awaitable[Any]],
) -> JSONResponse:
    """
    Run one AI operation inside a request context

    The JSON body is validated against ``schema`` (passed through as-is when
    no schema is given) and handed to ``operation``. Failures of any kind
    are rendered as the gateway error body.
    """
    context = RequestContext(user_api_key=caller_key, endpoint=request.url.path)
    with request_scope(context):
        try:
            raw = await _read_json(request)
            update_meta(model=extract_model(raw), project_id=extract_project_id(raw))
            payload = _parse(schema, raw) if schema is not None else raw
            result = await operation(payload)
        except Exception as e:
            return _error_response(context, _fail(context, e, telemetry))

        telemetry.info(TelemetryEvent.success(context))
    return JSONResponse(
        content=jsonable_encoder(result),
        headers={REQUEST_ID_HEADER: context.request_id},
    )


# ============ Streaming ============

def _sse(data: dict[str, Any], event: Optional[str] = None) -> str:
    prefix = f"event: {event}\n" if event else ""
    return f"{prefix}data: {json.dumps(data, ensure_ascii=False)}\n\n"


async def sse_chat_events(
    context: RequestContext,
    chunks: AsyncGenerator[str, None],
    telemetry: AiTelemetryLogger,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncGenerator[str, None]:
    """
    Render a chat stream as server-sent events

    The connection is checked before every pull from ``chunks``, so nothing
    more is requested upstream once the client is gone. The done event is
    only written to a connected client.
    """
    activate(context)
    disconnected = False
    try:
        while True:
            if await is_disconnected():
                disconnected = True
                logger.info("Client disconnected from chat stream (request %s)", context.request_id)
                break
            try:
                text = await chunks.__anext__()
            except StopAsyncIteration:
                break
            yield _sse({"chunk": text})
        if not disconnected:
            yield _sse({"done": True})
        telemetry.info(TelemetryEvent.success(context))
    except Exception as e:
        error = _fail(context, e, telemetry)
        yield _sse(error.to_dict(include_details=False), event="error")
    finally:
        await chunks.aclose()


# ============ Collaborator helpers ============

async def _end_reads(db: AsyncSession) -> None:
    """Finish the lookup transaction so no pooled connection is held during a provider call"""
    if db.in_transaction():
        await db.commit()


async def _template_prompts(
    templates: TemplateRepository, template_ids: Optional[list[str]]
) -> list[str]:
    prompts: list[str] = []
    for template_id in template_ids or []:
        template = await templates.get_by_id(template_id)
        if template is None:
            logger.warning("Style template %s not found, skipping", template_id)
            continue
        prompts.append(template.style_prompt)
    return prompts


async def _scene_image(
    assets: AssetService, project_id: str, scene_id: str, missing_message: str
) -> tuple[Scene, Asset, InlineMedia]:
    """Resolve a scene and load its primary image"""
    await assets.require_project(project_id)
    scene = await assets.require_scene(project_id, scene_id)
    if not scene.primary_image_asset_id:
        raise PayloadValidationError(missing_message, code="SCENE_IMAGE_MISSING")
    asset = await assets.require_asset(
        scene.primary_image_asset_id, "IMAGE_ASSET_NOT_FOUND", "Image asset not found."
    )
    return scene, asset, await assets.read_asset_base64(asset)


def _asset_duration(asset: Asset) -> float:
    value = (asset.metadata or {}).get("duration")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def _check_extension_budget(current_duration: float, extension_count: int) -> None:
    remaining = max(
        0,
        math.floor(
            (capabilities.MAX_EXTENDABLE_DURATION - current_duration) / capabilities.EXTENSION_SECONDS
        ),
    )
    if extension_count > remaining:
        raise PayloadValidationError(
            f"Video can only be extended {remaining} more times "
            f"(current: {current_duration:g}s, max: {capabilities.MAX_EXTENDABLE_DURATION}s)",
            code="EXTENSION_LIMIT_EXCEEDED",
            details={
                "currentDuration": current_duration,
                "requestedExtensions": extension_count,
                "maxExtensions": remaining,
            },
        )


async def _asset_result(
    assets: AssetService, asset: Asset, project_id: str, scene_id: str, kind: AssetType
) -> dict[str, Any]:
    scene = await assets.require_scene(project_id, scene_id)
    view = await assets.enrich_scene(scene)
    return {
        "asset": {"id": asset.id},
        "url": view.image_url if kind == "image" else view.video_url,
        "scene": view.model_dump(by_alias=True, mode="json"),
    }


# ============ Text endpoints ============

@router.post("/chat")
async def chat(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    telemetry: TelemetryDep,
):
    """Chat with the creative assistant"""

    async def run(body: AiChatRequest) -> dict[str, Any]:
        update_meta(
            model=body.chat_model,
            prompt=body.prompt,
            entry_point=body.entry_point or "agent:chat",
        )
        text = await service.chat(
            prompt=body.prompt,
            history=[ChatTurn(role=turn.role, text=turn.text) for turn in body.history],
            image=InlineMedia(body.image.data, body.image.mime_type) if body.image else None,
            chat_model=body.chat_model,
            workflow=body.workflow,
            thinking_mode=body.thinking_mode,
        )
        return {"text": text}

    return await _handle(request, caller_key, telemetry, AiChatRequest, run)


@router.post("/chat/stream")
async def chat_stream(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    telemetry: TelemetryDep,
):
    """
    Chat with the creative assistant as a server-sent event stream

    Validation errors are returned as a plain JSON error before the stream
    starts; later failures arrive as an ``error`` event.
    """
    context = RequestContext(user_api_key=caller_key, endpoint=request.url.path)
    with request_scope(context):
        try:
            body = _parse(AiChatRequest, await _read_json(request))
            update_meta(
                model=body.chat_model,
                prompt=body.prompt,
                entry_point=body.entry_point or "agent:chat",
            )
        except Exception as e:
            return _error_response(context, _fail(context, e, telemetry))

    chunks = service.stream_chat(
        prompt=body.prompt,
        history=[ChatTurn(role=turn.role, text=turn.text) for turn in body.history],
        image=InlineMedia(body.image.data, body.image.mime_type) if body.image else None,
        chat_model=body.chat_model,
        workflow=body.workflow,
        thinking_mode=body.thinking_mode,
    )
    return StreamingResponse(
        sse_chat_events(context, chunks, telemetry, request.is_disconnected),
        media_type="text/event-stream",
        headers={REQUEST_ID_HEADER: context.request_id, "Cache-Control": "no-cache"},
    )


@router.post("/storyboard")
async def generate_storyboard(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    templates: TemplateRepoDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Generate scene descriptions for a concept"""

    async def run(body: AiStoryboardRequest) -> dict[str, Any]:
        update_meta(
            model=workflows.STORYBOARD_MODEL,
            prompt=body.concept,
            entry_point=body.entry_point or "agent:generate",
        )
        template_prompts = await _template_prompts(templates, body.template_ids)
        await _end_reads(db)
        return await service.generate_storyboard(
            concept=body.concept,
            image=InlineMedia(body.image.data, body.image.mime_type) if body.image else None,
            style_names=body.style_names,
            template_prompts=template_prompts,
            scene_count=body.scene_count,
            workflow=body.workflow,
        )

    return await _handle(request, caller_key, telemetry, AiStoryboardRequest, run)


@router.post("/storyboard/enhanced")
async def generate_enhanced_storyboard(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    telemetry: TelemetryDep,
):
    """Generate scenes with image prompts, animation prompts and timing"""

    async def run(body: AiEnhancedStoryboardRequest) -> dict[str, Any]:
        update_meta(
            model=workflows.STORYBOARD_MODEL,
            prompt=body.concept,
            entry_point=body.entry_point or "agent:generate-enhanced",
        )
        return await service.generate_enhanced_storyboard(
            concept=body.concept,
            scene_count=body.scene_count,
            workflow=body.workflow,
            system_instruction=body.system_instruction,
        )

    return await _handle(request, caller_key, telemetry, AiEnhancedStoryboardRequest, run)


@router.post("/preview-styles")
async def preview_styles(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    telemetry: TelemetryDep,
):
    """Generate four style directions for a concept"""

    async def run(body: AiPreviewStylesRequest) -> dict[str, Any]:
        update_meta(
            model=workflows.STORYBOARD_MODEL,
            prompt=body.concept,
            entry_point=body.entry_point or "agent:preview-styles",
        )
        return await service.generate_style_previews(concept=body.concept, workflow=body.workflow)

    return await _handle(request, caller_key, telemetry, AiPreviewStylesRequest, run)


@router.post("/storyboard/regenerate")
async def regenerate_description(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    telemetry: TelemetryDep,
):
    """Rewrite one scene description"""

    async def run(body: AiRegenerateDescriptionRequest) -> dict[str, Any]:
        update_meta(model=workflows.STORYBOARD_MODEL, prompt=body.description)
        return {"description": await service.regenerate_description(body.description)}

    return await _handle(request, caller_key, telemetry, AiRegenerateDescriptionRequest, run)


@router.post("/scenes/{scene_id}/regenerate")
async def regenerate_scene(
    scene_id: str,
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Rewrite a stored scene's description and save it"""

    async def run(raw: Any) -> dict[str, Any]:
        if not isinstance(raw, dict) or not raw.get("projectId"):
            raise PayloadValidationError("Project ID is required", code="PROJECT_ID_REQUIRED")
        body = _parse(AiRegenerateSceneRequest, raw)

        scene = await assets.require_scene(body.project_id, scene_id)
        await _end_reads(db)
        update_meta(model=workflows.STORYBOARD_MODEL, prompt=scene.description)
        description = await service.regenerate_description(scene.description)

        updated = await assets.project_repo.update_scene(
            body.project_id, scene_id, SceneUpdate(description=description)
        )
        if updated is None:
            raise InternalError(
                "Failed to update scene",
                code="SCENE_UPDATE_FAILED",
                details={"sceneId": scene_id},
            )
        view = await assets.enrich_scene(updated)
        return {"scene": view.model_dump(by_alias=True, mode="json"), "description": description}

    return await _handle(request, caller_key, telemetry, None, run)


# ============ Image endpoints ============

@router.post("/image")
async def generate_image(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    templates: TemplateRepoDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Render a scene image and make it the scene's primary image"""

    async def run(body: AiGenerateImageRequest) -> dict[str, Any]:
        update_meta(model=body.image_model, prompt=body.description)
        await assets.require_project(body.project_id)
        await assets.require_scene(body.project_id, body.scene_id)

        style_prompts = [
            *body.style_prompts,
            *await _template_prompts(templates, body.template_ids),
        ]
        await _end_reads(db)
        media = await service.generate_image(
            description=body.description,
            aspect_ratio=body.aspect_ratio,
            style_prompts=style_prompts,
            image_model=body.image_model,
            workflow=body.workflow,
        )
        asset = await assets.persist_asset(
            body.project_id,
            body.scene_id,
            "image",
            media.mime_type,
            media.data,
            metadata={"source": "ai-image", **media.metadata},
        )
        return await _asset_result(assets, asset, body.project_id, body.scene_id, "image")

    return await _handle(request, caller_key, telemetry, AiGenerateImageRequest, run)


@router.post("/image/edit")
async def edit_image(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Edit a scene's primary image with a text instruction"""

    async def run(body: AiEditImageRequest) -> dict[str, Any]:
        update_meta(model=workflows.IMAGE_EDIT_MODEL, prompt=body.prompt)
        _, previous, image = await _scene_image(
            assets, body.project_id, body.scene_id, "Scene has no image to edit."
        )
        await _end_reads(db)
        media = await service.edit_image(image, body.prompt)
        asset = await assets.persist_asset(
            body.project_id,
            body.scene_id,
            "image",
            media.mime_type,
            media.data,
            metadata={"source": "ai-image-edit", "previousAssetId": previous.id, **media.metadata},
        )
        return await _asset_result(assets, asset, body.project_id, body.scene_id, "image")

    return await _handle(request, caller_key, telemetry, AiEditImageRequest, run)


@router.post("/image/edit/prompt")
async def image_edit_prompt(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Suggest an edit instruction for a scene's image"""

    async def run(body: AiSceneRefRequest) -> dict[str, Any]:
        update_meta(model=workflows.IMAGE_EDIT_MODEL)
        scene, _, image = await _scene_image(
            assets, body.project_id, body.scene_id, "Scene has no image to reference."
        )
        await _end_reads(db)
        return {"prompt": await service.generate_image_edit_prompt(scene.description, image)}

    return await _handle(request, caller_key, telemetry, AiSceneRefRequest, run)


# ============ Video endpoints ============

@router.post("/video/prompt")
async def video_prompt(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Suggest an animation prompt for a scene's image"""

    async def run(body: AiSceneRefRequest) -> dict[str, Any]:
        update_meta(model=workflows.STORYBOARD_MODEL)
        scene, _, image = await _scene_image(
            assets, body.project_id, body.scene_id, "Scene has no image to reference."
        )
        await _end_reads(db)
        return {"prompt": await service.generate_video_prompt(scene.description, image)}

    return await _handle(request, caller_key, telemetry, AiSceneRefRequest, run)


@router.post("/video")
async def generate_video(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Animate a scene's image and make the clip the scene's primary video"""

    async def run(body: AiGenerateVideoRequest) -> dict[str, Any]:
        update_meta(model=body.model, prompt=body.prompt)
        _, _, image = await _scene_image(
            assets,
            body.project_id,
            body.scene_id,
            "Scene requires an image before generating video.",
        )
        await _end_reads(db)
        media = await service.generate_video(
            image=image,
            prompt=body.prompt,
            model=body.model,
            aspect_ratio=body.aspect_ratio,
            resolution=body.resolution,
            reference_images=[
                InlineMedia(item.data, item.mime_type) for item in body.reference_images
            ] if body.reference_images else None,
            last_frame=(
                InlineMedia(body.last_frame.data, body.last_frame.mime_type)
                if body.last_frame
                else None
            ),
            duration=body.duration,
        )
        metadata = {
            "source": "ai-video",
            "prompt": body.prompt,
            "model": body.model,
            **media.metadata,
        }
        metadata["duration"] = body.duration or media.metadata.get("requestedDuration")
        asset = await assets.persist_asset(
            body.project_id, body.scene_id, "video", media.mime_type, media.data, metadata=metadata
        )
        return await _asset_result(assets, asset, body.project_id, body.scene_id, "video")

    return await _handle(request, caller_key, telemetry, AiGenerateVideoRequest, run)


@router.post("/video/extend")
async def extend_video(
    request: Request,
    caller_key: CallerApiKey,
    service: GenerationServiceDep,
    assets: AssetServiceDep,
    db: DbSession,
    telemetry: TelemetryDep,
):
    """Extend a scene's primary video by one or more 7 second steps"""

    async def run(body: AiExtendVideoRequest) -> dict[str, Any]:
        update_meta(model=body.model, prompt=body.prompt)
        await assets.require_project(body.project_id)
        scene = await assets.require_scene(body.project_id, body.scene_id)
        if not scene.primary_video_asset_id:
            raise PayloadValidationError(
                "Scene requires a video before extending.", code="SCENE_VIDEO_MISSING"
            )
        source = await assets.require_asset(
            scene.primary_video_asset_id, "VIDEO_ASSET_NOT_FOUND", "Video asset not found."
        )
        current_duration = _asset_duration(source)
        _check_extension_budget(current_duration, body.extension_count)

        video = await assets.read_asset_base64(source)
        await _end_reads(db)
        media = await service.extend_video(
            video=video,
            prompt=body.prompt,
            model=body.model,
            aspect_ratio=scene.aspect_ratio,
            extension_count=body.extension_count,
            current_duration=current_duration,
        )
        asset = await assets.persist_asset(
            body.project_id,
            body.scene_id,
            "video",
            media.mime_type,
            media.data,
            metadata={
                "source": "ai-video-extension",
                "prompt": body.prompt,
                "model": body.model,
                "extendedFrom": source.id,
                "extensionCount": body.extension_count,
                "duration": current_duration
                + body.extension_count * capabilities.EXTENSION_SECONDS,
            },
        )
        return await _asset_result(assets, asset, body.project_id, body.scene_id, "video")

    return await _handle(request, caller_key, telemetry, AiExtendVideoRequest, run)


@router.get("/video/capabilities")
async def video_capabilities():
    """Capability table of the supported video models"""
    return {
        "models": {
            model: model_capabilities.to_dict()
            for model, model_capabilities in capabilities.MODEL_CAPABILITIES.items()
        },
        "limits": {
            "maxReferenceImages": capabilities.MAX_REFERENCE_IMAGES,
            "extensionSeconds": capabilities.EXTENSION_SECONDS,
            "minExtensionCount": capabilities.MIN_EXTENSION_COUNT,
            "maxExtensionCount": capabilities.MAX_EXTENSION_COUNT,
            "maxExtendableDuration": capabilities.MAX_EXTENDABLE_DURATION,
            "maxExtendedDuration": capabilities.MAX_EXTENDED_DURATION,
            "defaultDuration": capabilities.DEFAULT_DURATION,
        },
    }


@router.post("/video/validate")
async def validate_video_parameters(
    request: Request,
    caller_key: CallerApiKey,
    telemetry: TelemetryDep,
):
    """
    Check a video parameter set against the capability matrix

    Reports every violated rule at once instead of failing on the first.
    """

    async def run(body: AiVideoPreflightRequest) -> dict[str, Any]:
        has_reference_images = body.reference_image_count > 0
        resolution, duration = capabilities.resolve_video_parameters(
            body.model,
            body.aspect_ratio,
            body.resolution,
            body.duration,
            has_reference_images=has_reference_images,
            has_last_frame=body.has_last_frame,
        )
        report = capabilities.validate_parameter_combination(
            body.model,
            resolution,
            duration,
            body.aspect_ratio,
            has_reference_images=has_reference_images,
            has_last_frame=body.has_last_frame,
        )
        errors = list(report.errors)
        if body.reference_image_count > capabilities.MAX_REFERENCE_IMAGES:
            errors.append(
                f"Maximum {capabilities.MAX_REFERENCE_IMAGES} reference images allowed. "
                f"You provided {body.reference_image_count}."
            )
        return {
            "valid": not errors,
            "errors": errors,
            "resolved": {"resolution": resolution, "duration": duration},
        }

    return await _handle(request, caller_key, telemetry, AiVideoPreflightRequest, run)
