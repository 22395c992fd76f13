"""
Generation Service Module

Turns validated generation requests into Gemini calls and normalizes the
results: text, JSON scene lists, inline images, and videos produced by
long-running Veo jobs.
"""

import base64
import json
import logging
from contextlib import aclosing, contextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Callable, Iterator, Optional, Sequence

from storyboard_gateway.common.errors import (
    GatewayError,
    NoOutputError,
    UpstreamError,
)
from storyboard_gateway.common.request_context import get_request_id
from storyboard_gateway.providers.base import GenerativeClient
from storyboard_gateway.providers.factory import GeminiClientProvider, get_client_provider
from storyboard_gateway.services import video_capabilities as capabilities
from storyboard_gateway.services import workflows
from storyboard_gateway.services.provider_errors import (
    classify_exception,
    parse_provider_error,
)
from storyboard_gateway.services.video_jobs import (
    EXTENSION_ERROR_CODES,
    GENERATION_ERROR_CODES,
    VideoJobRunner,
)

logger = logging.getLogger(__name__)

IMAGE_MIME_PREFIX = "image/"
DEFAULT_IMAGE_MIME_TYPE = "image/png"
EXTENSION_RESOLUTION = "720p"
EXTENSION_DURATION_SECONDS = 8


@dataclass
class InlineMedia:
    """Base64 payload with its mime type"""

    data: str
    mime_type: str

    def to_part(self) -> dict[str, Any]:
        return {"inlineData": {"mimeType": self.mime_type, "data": self.data}}

    def to_bytes_field(self, key: str = "bytesBase64Encoded") -> dict[str, Any]:
        return {key: self.data, "mimeType": self.mime_type}


@dataclass
class ChatTurn:
    role: str
    text: str


@dataclass
class GeneratedMedia:
    """Binary generation result ready for persistence"""

    data: bytes
    mime_type: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _text_part(text: str) -> dict[str, Any]:
    return {"text": text}


def _system_instruction(text: str) -> dict[str, Any]:
    return {"parts": [_text_part(text)]}


def _candidate_parts(body: Any) -> Iterator[dict[str, Any]]:
    if not isinstance(body, dict):
        return
    for candidate in body.get("candidates") or []:
        content = candidate.get("content") or {}
        for part in content.get("parts") or []:
            if isinstance(part, dict):
                yield part


def collect_text(body: Any) -> str:
    """Concatenate the text parts of a generateContent body, skipping thoughts"""
    return "".join(
        part["text"]
        for part in _candidate_parts(body)
        if isinstance(part.get("text"), str) and not part.get("thought")
    )


def pick_inline_image(body: Any) -> Optional[InlineMedia]:
    """First inline part whose mime type is an image"""
    for part in _candidate_parts(body):
        inline = part.get("inlineData") or {}
        mime_type = inline.get("mimeType")
        data = inline.get("data")
        if mime_type and data and mime_type.startswith(IMAGE_MIME_PREFIX):
            return InlineMedia(data=data, mime_type=mime_type)
    return None


def _format_seconds(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


@contextmanager
def _classified(operation: str, model: Optional[str] = None) -> Iterator[None]:
    """Re-raise anything escaping the block as a classified GatewayError"""
    try:
        yield
    except Exception as exc:
        error = classify_exception(exc, operation, model, get_request_id())
        if error is exc:
            raise
        raise error from exc


class GenerationService:
    """
    Generation Service

    Stateless apart from the client provider; safe to share across requests.
    """

    def __init__(
        self,
        client_provider: Optional[GeminiClientProvider] = None,
        job_runner_factory: Callable[[GenerativeClient], VideoJobRunner] = VideoJobRunner,
    ):
        self.client_provider = client_provider or get_client_provider()
        self.job_runner_factory = job_runner_factory

    def _client(self) -> GenerativeClient:
        return self.client_provider.get_client()

    async def _generate(
        self, operation: str, model: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self._client().generate_content(model, body)
        if not response.is_success:
            raise parse_provider_error(response, operation, model, get_request_id())
        return response.body if isinstance(response.body, dict) else {}

    async def _generate_text(
        self, operation: str, model: str, body: dict[str, Any]
    ) -> str:
        text = collect_text(await self._generate(operation, model, body)).strip()
        if not text:
            raise NoOutputError(
                message=f"{operation} failed: model response did not include text output.",
                code="MODEL_NO_TEXT_OUTPUT",
                suggested_action="Try rephrasing your request.",
                request_id=get_request_id(),
            )
        return text

    async def _generate_json_array(
        self, operation: str, model: str, body: dict[str, Any]
    ) -> list[Any]:
        text = await self._generate_text(operation, model, body)
        parsed: Any = None
        if text.startswith("[") and text.endswith("]"):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
        if not isinstance(parsed, list):
            raise UpstreamError(
                message="Received an invalid JSON response from the model.",
                code="INVALID_MODEL_RESPONSE",
                status_code=502,
                details={"operation": operation, "model": model},
                request_id=get_request_id(),
            )
        return parsed

    # ===== Chat =====

    @staticmethod
    def _chat_body(
        prompt: str,
        history: Sequence[ChatTurn],
        image: Optional[InlineMedia],
        workflow: str,
        thinking_mode: bool,
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [_text_part(prompt)]
        if image is not None:
            parts.insert(0, image.to_part())
        contents = [{"role": turn.role, "parts": [_text_part(turn.text)]} for turn in history]
        contents.append({"role": "user", "parts": parts})

        body: dict[str, Any] = {
            "systemInstruction": _system_instruction(
                workflows.chat_instruction(workflows.get_workflow(workflow))
            ),
            "contents": contents,
        }
        if thinking_mode:
            body["generationConfig"] = {"thinkingConfig": {"thinkingBudget": -1}}
        return body

    async def chat(
        self,
        prompt: str,
        history: Sequence[ChatTurn],
        image: Optional[InlineMedia],
        chat_model: str,
        workflow: str,
        thinking_mode: bool = False,
    ) -> str:
        """Single chat reply from the creative assistant"""
        with _classified("Chat", chat_model):
            body = self._chat_body(prompt, history, image, workflow, thinking_mode)
            return await self._generate_text("Chat", chat_model, body)

    async def stream_chat(
        self,
        prompt: str,
        history: Sequence[ChatTurn],
        image: Optional[InlineMedia],
        chat_model: str,
        workflow: str,
        thinking_mode: bool = False,
    ) -> AsyncGenerator[str, None]:
        """
        Stream a chat reply as text chunks

        Empty chunks are skipped. Closing this generator closes the upstream
        stream, so no further chunks are requested from the provider.
        """
        with _classified("Chat stream", chat_model):
            body = self._chat_body(prompt, history, image, workflow, thinking_mode)
            upstream = self._client().stream_generate_content(chat_model, body)
            async with aclosing(upstream):
                async for chunk, response in upstream:
                    if chunk is None:
                        raise parse_provider_error(
                            response, "Chat stream", chat_model, get_request_id()
                        )
                    text = collect_text(chunk)
                    if text:
                        yield text

    # ===== Storyboard =====

    async def generate_storyboard(
        self,
        concept: str,
        image: Optional[InlineMedia],
        style_names: Sequence[str],
        template_prompts: Sequence[str],
        scene_count: int,
        workflow: str,
    ) -> dict[str, Any]:
        """Scene descriptions for a concept, plus a chat reply for the user"""
        model = workflows.STORYBOARD_MODEL
        with _classified("Storyboard generation", model):
            parts: list[dict[str, Any]] = [_text_part(f'User concept: "{concept}"')]
            if image is not None:
                parts.insert(0, image.to_part())
            instruction = workflows.storyboard_instruction(
                workflows.get_workflow(workflow), scene_count, style_names, template_prompts
            )
            body = {
                "systemInstruction": _system_instruction(instruction),
                "contents": [{"role": "user", "parts": parts}],
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "responseSchema": workflows.STORYBOARD_SCHEMA,
                },
            }
            scenes = await self._generate_json_array("Storyboard generation", model, body)

        return {
            "scenes": scenes,
            "modelResponse": (
                f"I've generated {len(scenes)} scene ideas for your storyboard. Click the "
                "'Generate' button on any card to bring it to life."
            ),
        }

    async def generate_enhanced_storyboard(
        self,
        concept: str,
        scene_count: int,
        workflow: str,
        system_instruction: Optional[str] = None,
    ) -> dict[str, Any]:
        """Scenes with image prompts, animation prompts and timing metadata"""
        model = workflows.STORYBOARD_MODEL
        with _classified("Enhanced storyboard generation", model):
            instruction = system_instruction or workflows.enhanced_storyboard_instruction(
                workflows.get_workflow(workflow), scene_count
            )
            body = {
                "systemInstruction": _system_instruction(instruction),
                "contents": [{"role": "user", "parts": [_text_part(f'User concept: "{concept}"')]}],
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "responseSchema": workflows.ENHANCED_STORYBOARD_SCHEMA,
                },
            }
            scenes = await self._generate_json_array(
                "Enhanced storyboard generation", model, body
            )

        total = 0.0
        for scene in scenes:
            metadata = scene.get("metadata") if isinstance(scene, dict) else None
            duration = metadata.get("duration") if isinstance(metadata, dict) else None
            if isinstance(duration, (int, float)):
                total += duration

        return {
            "scenes": scenes,
            "modelResponse": (
                f"I've generated {len(scenes)} enhanced scenes for your storyboard with a total "
                f"duration of {_format_seconds(total)} seconds. Each scene includes image "
                "prompts, animation prompts, and detailed metadata."
            ),
        }

    async def generate_style_previews(self, concept: str, workflow: str) -> dict[str, Any]:
        """Exactly four distinct style directions for a concept"""
        model = workflows.STORYBOARD_MODEL
        operation = "Style preview generation"
        with _classified(operation, model):
            body = {
                "systemInstruction": _system_instruction(
                    workflows.style_preview_instruction(workflows.get_workflow(workflow))
                ),
                "contents": [{"role": "user", "parts": [_text_part(f'User concept: "{concept}"')]}],
                "generationConfig": {
                    "responseMimeType": "application/json",
                    "responseSchema": workflows.STYLE_PREVIEW_SCHEMA,
                },
            }
            previews = await self._generate_json_array(operation, model, body)

        if len(previews) != workflows.STYLE_PREVIEW_COUNT:
            raise UpstreamError(
                message=(
                    f"Expected exactly {workflows.STYLE_PREVIEW_COUNT} style previews, "
                    f"but received {len(previews)}."
                ),
                code="STYLE_PREVIEW_COUNT_MISMATCH",
                status_code=502,
                details={"operation": operation, "received": len(previews)},
                request_id=get_request_id(),
            )

        return {
            "previews": [
                {"id": f"preview-{index}", **preview}
                for index, preview in enumerate(previews, start=1)
            ],
            "modelResponse": (
                "I've generated 4 diverse style preview scenes for your concept. Each represents "
                "a different visual direction you can explore. Select your preferred style to "
                "generate the full storyboard."
            ),
        }

    async def regenerate_description(self, description: str) -> str:
        model = workflows.STORYBOARD_MODEL
        with _classified("Scene description regeneration", model):
            body = {
                "systemInstruction": _system_instruction(
                    workflows.REGENERATE_DESCRIPTION_INSTRUCTION
                ),
                "contents": [
                    {
                        "role": "user",
                        "parts": [_text_part(f'Revise this scene description: "{description}"')],
                    }
                ],
            }
            return await self._generate_text("Scene description regeneration", model, body)

    # ===== Images =====

    async def generate_image(
        self,
        description: str,
        aspect_ratio: str,
        style_prompts: Sequence[str],
        image_model: str,
        workflow: str,
    ) -> GeneratedMedia:
        """
        Render a scene image

        Gemini image models answer through generateContent with inline image
        parts; Imagen models answer through predict with base64 predictions.
        """
        full_prompt = workflows.image_prompt(
            workflows.get_workflow(workflow), description, style_prompts
        )
        with _classified("Image generation", image_model):
            if image_model in workflows.INLINE_IMAGE_MODELS:
                media = await self._generate_inline_image(full_prompt, aspect_ratio, image_model)
            else:
                media = await self._predict_image(full_prompt, aspect_ratio, image_model)

        return GeneratedMedia(
            data=base64.b64decode(media.data),
            mime_type=media.mime_type,
            metadata={"model": image_model, "aspectRatio": aspect_ratio},
        )

    async def _generate_inline_image(
        self, full_prompt: str, aspect_ratio: str, model: str
    ) -> InlineMedia:
        prompt = (
            f"{full_prompt}. Generate a high-quality image in PNG format with a "
            f"{aspect_ratio} aspect ratio."
        )
        body = {
            "contents": [{"role": "user", "parts": [_text_part(prompt)]}],
            "generationConfig": {"responseModalities": ["IMAGE", "TEXT"]},
        }
        media = pick_inline_image(await self._generate("Image generation", model, body))
        if media is None:
            request_id = get_request_id()
            raise NoOutputError(
                message=(
                    f"Flash Image generation failed to return an image. Request ID: {request_id}. "
                    "The model may have blocked the request or failed to generate output."
                ),
                code="FLASH_IMAGE_NO_OUTPUT",
                suggested_action="Try simplifying your prompt or using a different image model.",
                details={"model": model},
                request_id=request_id,
            )
        return media

    async def _predict_image(self, full_prompt: str, aspect_ratio: str, model: str) -> InlineMedia:
        body = {
            "instances": [{"prompt": full_prompt}],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": aspect_ratio,
                "outputOptions": {"mimeType": DEFAULT_IMAGE_MIME_TYPE},
                "personGeneration": "allow_adult",
            },
        }
        response = await self._client().predict(model, body)
        if not response.is_success:
            raise parse_provider_error(response, "Image generation", model, get_request_id())

        predictions = response.body.get("predictions") if isinstance(response.body, dict) else None
        first = predictions[0] if predictions else {}
        data = first.get("bytesBase64Encoded") if isinstance(first, dict) else None
        if not data:
            request_id = get_request_id()
            raise NoOutputError(
                message=(
                    f"Image generation failed or returned no images. Request ID: {request_id}. "
                    "This may indicate the generation was blocked by safety filters or failed "
                    "to complete."
                ),
                code="IMAGE_GENERATION_NO_OUTPUT",
                suggested_action="Try modifying your prompt or adjusting safety settings.",
                details={"model": model},
                request_id=request_id,
            )
        return InlineMedia(data=data, mime_type=first.get("mimeType") or DEFAULT_IMAGE_MIME_TYPE)

    async def edit_image(self, image: InlineMedia, prompt: str) -> GeneratedMedia:
        model = workflows.IMAGE_EDIT_MODEL
        with _classified("Image edit", model):
            body = {
                "contents": [{"role": "user", "parts": [image.to_part(), _text_part(prompt)]}],
                "generationConfig": {"responseModalities": ["IMAGE", "TEXT"]},
            }
            media = pick_inline_image(await self._generate("Image edit", model, body))
            if media is None:
                request_id = get_request_id()
                raise NoOutputError(
                    message=(
                        f"Image edit failed to return an image. Request ID: {request_id}. "
                        "The model may have blocked the request or failed to generate output."
                    ),
                    code="IMAGE_EDIT_NO_OUTPUT",
                    suggested_action="Try modifying your edit prompt or using a different approach.",
                    details={"model": model},
                    request_id=request_id,
                )

        return GeneratedMedia(
            data=base64.b64decode(media.data),
            mime_type=media.mime_type,
            metadata={"model": model},
        )

    async def generate_image_edit_prompt(self, description: str, image: InlineMedia) -> str:
        model = workflows.IMAGE_EDIT_MODEL
        with _classified("Image edit prompt generation", model):
            body = {
                "systemInstruction": _system_instruction(workflows.IMAGE_EDIT_PROMPT_INSTRUCTION),
                "contents": [
                    {
                        "role": "user",
                        "parts": [
                            _text_part(f'Scene description: "{description}"'),
                            image.to_part(),
                        ],
                    }
                ],
                "generationConfig": {"responseModalities": ["TEXT"]},
            }
            return await self._generate_text("Image edit prompt generation", model, body)

    async def generate_video_prompt(self, description: str, image: InlineMedia) -> str:
        model = workflows.STORYBOARD_MODEL
        with _classified("Video prompt generation", model):
            body = {
                "systemInstruction": _system_instruction(workflows.VIDEO_PROMPT_INSTRUCTION),
                "contents": [
                    {
                        "role": "user",
                        "parts": [
                            _text_part(f'Scene description: "{description}"'),
                            image.to_part(),
                        ],
                    }
                ],
            }
            return await self._generate_text("Video prompt generation", model, body)

    # ===== Video =====

    async def generate_video(
        self,
        image: InlineMedia,
        prompt: str,
        model: str,
        aspect_ratio: str,
        resolution: Optional[str] = None,
        reference_images: Optional[Sequence[InlineMedia]] = None,
        last_frame: Optional[InlineMedia] = None,
        duration: Optional[int] = None,
    ) -> GeneratedMedia:
        """
        Animate a scene image with a Veo model

        Parameters are resolved and validated against the capability matrix
        before anything is submitted. Models without a resolution parameter
        never receive one, even when the caller asked for it.

        Raises:
            VideoParameterValidationError: Parameter combination not supported
            GatewayError: Classified provider or job failure
        """
        final_resolution, final_duration = capabilities.resolve_video_parameters(
            model,
            aspect_ratio,
            resolution,
            duration,
            has_reference_images=bool(reference_images),
            has_last_frame=last_frame is not None,
        )

        capabilities.validate_resolution(model, final_resolution, aspect_ratio, final_duration)
        capabilities.validate_reference_images(model, reference_images, aspect_ratio)
        capabilities.validate_last_frame(model, last_frame, image is not None)

        instance: dict[str, Any] = {"prompt": prompt, "image": image.to_bytes_field()}
        parameters: dict[str, Any] = {
            "sampleCount": 1,
            "aspectRatio": aspect_ratio,
            "durationSeconds": final_duration,
        }
        if final_resolution:
            parameters["resolution"] = final_resolution
        if reference_images:
            instance["referenceImages"] = [
                {"image": ref.to_bytes_field(), "referenceType": "asset"}
                for ref in reference_images
            ]
            parameters["personGeneration"] = "allow_adult"
        if last_frame is not None:
            instance["lastFrame"] = last_frame.to_bytes_field()
            parameters["personGeneration"] = "allow_adult"

        logger.info(
            "Video generation starting: model=%s aspect_ratio=%s resolution=%s duration=%s "
            "reference_images=%s last_frame=%s",
            model,
            aspect_ratio,
            final_resolution or "omitted",
            final_duration,
            len(reference_images or ()),
            last_frame is not None,
        )

        with _classified("Video generation", model):
            runner = self.job_runner_factory(self._client())
            result = await runner.run(
                model,
                {"instances": [instance], "parameters": parameters},
                operation="Video generation",
                request_id=get_request_id(),
                error_codes=GENERATION_ERROR_CODES,
            )

        return GeneratedMedia(
            data=result.data,
            mime_type=result.mime_type,
            metadata={
                "requestedAspectRatio": aspect_ratio,
                "requestedResolution": final_resolution,
                "requestedDuration": final_duration,
                "model": model,
            },
        )

    async def extend_video(
        self,
        video: InlineMedia,
        prompt: str,
        model: str,
        aspect_ratio: str,
        extension_count: int = 1,
        current_duration: float = 0,
    ) -> GeneratedMedia:
        """
        Extend a video by chaining extension jobs

        Each step feeds the previous step's output back in. A failure at step
        i stops the chain; the raised error's details report how far it got.
        """
        capabilities.validate_video_extension(model, current_duration, extension_count)

        logger.info(
            "Video extension starting: %s iteration(s), model=%s aspect_ratio=%s current=%ss",
            extension_count,
            model,
            aspect_ratio,
            current_duration,
        )

        current = video
        current_bytes = b""
        for extension_number in range(1, extension_count + 1):
            logger.info("Video extension %s/%s", extension_number, extension_count)
            body = {
                "instances": [{"prompt": prompt, "video": current.to_bytes_field()}],
                "parameters": {
                    "sampleCount": 1,
                    "aspectRatio": aspect_ratio,
                    "resolution": EXTENSION_RESOLUTION,
                    "durationSeconds": EXTENSION_DURATION_SECONDS,
                    "personGeneration": "allow_all",
                },
            }
            try:
                runner = self.job_runner_factory(self._client())
                result = await runner.run(
                    model,
                    body,
                    operation=f"Video extension {extension_number}/{extension_count}",
                    request_id=get_request_id(),
                    error_codes=EXTENSION_ERROR_CODES,
                )
            except Exception as exc:
                error = self._extension_error(
                    exc, model, extension_number, extension_count, current_duration
                )
                if error is exc:
                    raise
                raise error from exc

            current_bytes = result.data
            current = InlineMedia(
                data=base64.b64encode(result.data).decode("ascii"),
                mime_type=result.mime_type,
            )

        final_duration = current_duration + extension_count * capabilities.EXTENSION_SECONDS
        logger.info(
            "Video extension finished: %s extension(s), duration=%ss",
            extension_count,
            final_duration,
        )
        return GeneratedMedia(
            data=current_bytes,
            mime_type=current.mime_type,
            metadata={
                "model": model,
                "extensionCount": extension_count,
                "duration": final_duration,
            },
        )

    @staticmethod
    def _extension_error(
        exc: Exception,
        model: str,
        extension_number: int,
        extension_count: int,
        current_duration: float,
    ) -> GatewayError:
        operation = f"Video extension {extension_number}/{extension_count}"
        error = classify_exception(exc, operation, model, get_request_id())
        if error.code == "UNKNOWN_ERROR":
            error.code = "VIDEO_EXTENSION_FAILED"

        completed = extension_number - 1
        error.details.update(
            {
                "extensionNumber": extension_number,
                "completedExtensions": completed,
                "completedDurationSeconds": (
                    current_duration + completed * capabilities.EXTENSION_SECONDS
                ),
            }
        )
        logger.error(
            "%s failed after %s completed extension(s): %s",
            operation,
            completed,
            error.message,
        )
        return error
