"""
Video Model Capability Module

Static capability matrix of the supported Veo models and the pure
functions that compute defaults and validate a video request against it.

Every validator is callable on its own and assumes nothing about which
other validators have run. All of them raise ``VideoParameterValidationError``
with a message naming the violated constraint and a concrete correction.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence

from storyboard_gateway.common.errors import VideoParameterValidationError
from storyboard_gateway.domain.ai import (
    MAX_EXTENSION_COUNT,
    MAX_REFERENCE_IMAGES,
    MIN_EXTENSION_COUNT,
)

REFERENCE_IMAGE_ASPECT_RATIO = "16:9"
# Seconds added by one extension
EXTENSION_SECONDS = 7
# Longest video that may still be extended
MAX_EXTENDABLE_DURATION = 141
# Longest video an extension chain may produce
MAX_EXTENDED_DURATION = 148

DEFAULT_DURATION = 6
FORCED_DURATION = 8

RESOLUTION_1080P = "1080p"
RESOLUTION_720P = "720p"


@dataclass(frozen=True)
class AspectRatioConstraint:
    """Limits of one model for one aspect ratio"""

    max_resolution: str
    supported_durations: tuple[int, ...]
    # Allowed durations per resolution; empty when the model takes no resolution
    duration_constraints: Mapping[str, tuple[int, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )


@dataclass(frozen=True)
class ModelCapabilities:
    """Feature support of one video model"""

    supports_resolution: bool
    supported_resolutions: tuple[str, ...]
    supports_reference_images: bool
    supports_last_frame: bool
    supports_extension: bool
    aspect_ratio_constraints: Mapping[str, AspectRatioConstraint]

    def to_dict(self) -> dict[str, Any]:
        return {
            "supportsResolution": self.supports_resolution,
            "supportedResolutions": list(self.supported_resolutions),
            "supportsReferenceImages": self.supports_reference_images,
            "supportsLastFrame": self.supports_last_frame,
            "supportsExtension": self.supports_extension,
            "aspectRatioConstraints": {
                ratio: {
                    "maxResolution": constraint.max_resolution,
                    "supportedDurations": list(constraint.supported_durations),
                    "durationConstraints": {
                        resolution: list(durations)
                        for resolution, durations in constraint.duration_constraints.items()
                    },
                }
                for ratio, constraint in self.aspect_ratio_constraints.items()
            },
        }


def _constraint(
    max_resolution: str,
    supported_durations: Sequence[int],
    duration_constraints: Optional[dict[str, Sequence[int]]] = None,
) -> AspectRatioConstraint:
    return AspectRatioConstraint(
        max_resolution=max_resolution,
        supported_durations=tuple(supported_durations),
        duration_constraints=MappingProxyType(
            {res: tuple(d) for res, d in (duration_constraints or {}).items()}
        ),
    )


_VEO_31_RATIO = _constraint(
    RESOLUTION_1080P,
    [4, 6, 8],
    {RESOLUTION_1080P: [8], RESOLUTION_720P: [4, 6, 8]},
)

_VEO_31 = ModelCapabilities(
    supports_resolution=True,
    supported_resolutions=(RESOLUTION_1080P, RESOLUTION_720P),
    supports_reference_images=True,
    supports_last_frame=True,
    supports_extension=True,
    aspect_ratio_constraints=MappingProxyType({"16:9": _VEO_31_RATIO, "9:16": _VEO_31_RATIO}),
)

# Per-model capabilities, following Google's Veo documentation
MODEL_CAPABILITIES: Mapping[str, ModelCapabilities] = MappingProxyType(
    {
        "veo-3.1-generate-preview": _VEO_31,
        "veo-3.1-fast-generate-preview": _VEO_31,
        "veo-3.0-generate-001": ModelCapabilities(
            supports_resolution=True,
            supported_resolutions=(RESOLUTION_1080P, RESOLUTION_720P),
            supports_reference_images=False,
            supports_last_frame=False,
            supports_extension=False,
            aspect_ratio_constraints=MappingProxyType(
                {
                    "16:9": _constraint(
                        RESOLUTION_1080P,
                        [4, 6, 8],
                        {RESOLUTION_1080P: [4, 6, 8], RESOLUTION_720P: [4, 6, 8]},
                    ),
                    "9:16": _constraint(RESOLUTION_720P, [4, 6, 8], {RESOLUTION_720P: [4, 6, 8]}),
                }
            ),
        ),
        "veo-3.0-fast-generate-001": ModelCapabilities(
            supports_resolution=True,
            supported_resolutions=(RESOLUTION_720P,),
            supports_reference_images=False,
            supports_last_frame=False,
            supports_extension=False,
            aspect_ratio_constraints=MappingProxyType(
                {
                    "16:9": _constraint(RESOLUTION_720P, [4, 6, 8], {RESOLUTION_720P: [4, 6, 8]}),
                    "9:16": _constraint(RESOLUTION_720P, [4, 6, 8], {RESOLUTION_720P: [4, 6, 8]}),
                }
            ),
        ),
        "veo-2.0-generate-001": ModelCapabilities(
            supports_resolution=False,
            supported_resolutions=(),
            supports_reference_images=False,
            supports_last_frame=False,
            supports_extension=False,
            aspect_ratio_constraints=MappingProxyType(
                {
                    "16:9": _constraint(RESOLUTION_720P, [5, 6, 8]),
                    "9:16": _constraint(RESOLUTION_720P, [5, 6, 8]),
                }
            ),
        ),
    }
)


@dataclass(frozen=True)
class DurationRule:
    """A provider constraint that pins the default duration"""

    name: str
    applies: Callable[[Optional[str], bool, bool], bool]
    duration: int


# Evaluated in order, first match wins
DURATION_RULES: tuple[DurationRule, ...] = (
    DurationRule(
        name="1080p requires 8 seconds",
        applies=lambda resolution, _refs, _last: resolution == RESOLUTION_1080P,
        duration=FORCED_DURATION,
    ),
    DurationRule(
        name="reference images require 8 seconds",
        applies=lambda _res, has_reference_images, _last: has_reference_images,
        duration=FORCED_DURATION,
    ),
    DurationRule(
        name="last frame interpolation requires 8 seconds",
        applies=lambda _res, _refs, has_last_frame: has_last_frame,
        duration=FORCED_DURATION,
    ),
)


@dataclass(frozen=True)
class ValidationReport:
    """Result of a non-raising holistic check"""

    valid: bool
    errors: tuple[str, ...] = ()


def _unknown_model(model: str) -> VideoParameterValidationError:
    return VideoParameterValidationError(
        f"Unknown video model: {model}. Please use a supported model.",
        suggested_action=f"Use one of: {', '.join(MODEL_CAPABILITIES)}.",
        details={"model": model},
    )


def _require_capabilities(model: str) -> ModelCapabilities:
    capabilities = MODEL_CAPABILITIES.get(model)
    if capabilities is None:
        raise _unknown_model(model)
    return capabilities


def get_model_capabilities(model: str) -> Optional[ModelCapabilities]:
    return MODEL_CAPABILITIES.get(model)


def supported_video_models() -> list[str]:
    return list(MODEL_CAPABILITIES)


def get_default_duration(
    model: str,
    resolution: Optional[str] = None,
    has_reference_images: bool = False,
    has_last_frame: bool = False,
) -> int:
    """
    Default video duration in seconds

    1080p, reference images and last frame interpolation each force 8 seconds;
    every other combination defaults to 6.
    """
    for rule in DURATION_RULES:
        if rule.applies(resolution, has_reference_images, has_last_frame):
            return rule.duration
    return DEFAULT_DURATION


def get_default_resolution(model: str, aspect_ratio: str) -> Optional[str]:
    """
    Default resolution for a model and aspect ratio

    Returns:
        The maximum resolution for the aspect ratio, or None when the model is
        unknown, takes no resolution parameter, or has no entry for the ratio.
        Callers omit the resolution field on None.
    """
    capabilities = MODEL_CAPABILITIES.get(model)
    if capabilities is None or not capabilities.supports_resolution:
        return None
    constraint = capabilities.aspect_ratio_constraints.get(aspect_ratio)
    return constraint.max_resolution if constraint else None


def resolve_video_parameters(
    model: str,
    aspect_ratio: str,
    resolution: Optional[str] = None,
    duration: Optional[int] = None,
    has_reference_images: bool = False,
    has_last_frame: bool = False,
) -> tuple[Optional[str], int]:
    """
    Fill in the resolution and duration a request left out

    Models without a resolution parameter always resolve to None, even when
    the caller asked for one.
    """
    capabilities = MODEL_CAPABILITIES.get(model)
    if capabilities is not None and not capabilities.supports_resolution:
        final_resolution = None
    else:
        final_resolution = resolution or get_default_resolution(model, aspect_ratio)

    if duration is None:
        duration = get_default_duration(
            model, final_resolution, has_reference_images, has_last_frame
        )
    return final_resolution, duration


def _allowed_durations(
    capabilities: ModelCapabilities, aspect_ratio: str, resolution: str
) -> tuple[int, ...]:
    constraint = capabilities.aspect_ratio_constraints.get(aspect_ratio)
    if constraint is None:
        return ()
    return constraint.duration_constraints.get(resolution, ())


def _format_durations(durations: Sequence[int]) -> str:
    return ", ".join(str(d) for d in durations)


def validate_resolution(
    model: str,
    resolution: Optional[str],
    aspect_ratio: str,
    duration: Optional[int] = None,
) -> None:
    """
    Validate resolution (and duration for that resolution)

    Raises:
        VideoParameterValidationError: Unknown model, unsupported resolution,
            1080p above the aspect ratio's maximum, or disallowed duration
    """
    capabilities = _require_capabilities(model)

    if not resolution:
        return

    if not capabilities.supports_resolution:
        raise VideoParameterValidationError(
            f"Model {model} does not support the resolution parameter. "
            "Resolution setting will be ignored by this model.",
            suggested_action="Omit the resolution parameter for this model.",
        )

    if resolution not in capabilities.supported_resolutions:
        supported = ", ".join(capabilities.supported_resolutions)
        raise VideoParameterValidationError(
            f"Model {model} does not support {resolution} resolution. "
            f"Supported resolutions: {supported}",
            suggested_action=f"Use {capabilities.supported_resolutions[0]} resolution.",
        )

    constraint = capabilities.aspect_ratio_constraints.get(aspect_ratio)
    max_resolution = constraint.max_resolution if constraint else None
    if resolution == RESOLUTION_1080P and max_resolution == RESOLUTION_720P:
        raise VideoParameterValidationError(
            f"Model {model} does not support 1080p for {aspect_ratio} aspect ratio. "
            f"Maximum resolution for {aspect_ratio}: {max_resolution}",
            suggested_action="Use 720p resolution.",
        )

    if duration is None:
        return

    allowed = _allowed_durations(capabilities, aspect_ratio, resolution)
    if allowed and duration not in allowed:
        suggestion = allowed[-1]
        raise VideoParameterValidationError(
            f"{resolution} resolution with {aspect_ratio} aspect ratio requires duration "
            f"to be one of: {_format_durations(allowed)}s. You requested {duration}s. "
            f"Please use {suggestion}s duration.",
            suggested_action=f"Use {suggestion}s duration.",
            details={"allowedDurations": list(allowed), "requestedDuration": duration},
        )


def validate_reference_images(
    model: str,
    reference_images: Optional[Sequence[Any]],
    aspect_ratio: str,
) -> None:
    """
    Validate reference images

    The count limit is checked before model support, so more than three
    images fail on any model.

    Raises:
        VideoParameterValidationError: Unknown model, too many images,
            unsupported model, or an aspect ratio other than 16:9
    """
    capabilities = _require_capabilities(model)

    if not reference_images:
        return

    count = len(reference_images)
    if count > MAX_REFERENCE_IMAGES:
        raise VideoParameterValidationError(
            f"Maximum {MAX_REFERENCE_IMAGES} reference images allowed. "
            f"You provided {count} images.",
            suggested_action=f"Remove {count - MAX_REFERENCE_IMAGES} reference image(s).",
        )

    if not capabilities.supports_reference_images:
        raise VideoParameterValidationError(
            f"Model {model} does not support reference images. "
            f"This feature is only available in Veo 3.1 models. Current model: {model}",
            suggested_action="Use veo-3.1-generate-preview or veo-3.1-fast-generate-preview.",
        )

    if aspect_ratio != REFERENCE_IMAGE_ASPECT_RATIO:
        raise VideoParameterValidationError(
            f"Reference images only support {REFERENCE_IMAGE_ASPECT_RATIO} aspect ratio. "
            f"Current aspect ratio: {aspect_ratio}. "
            f"Please change to {REFERENCE_IMAGE_ASPECT_RATIO} to use reference images.",
            suggested_action=f"Change aspect ratio to {REFERENCE_IMAGE_ASPECT_RATIO}.",
        )


def validate_last_frame(model: str, last_frame: Any, has_initial_image: bool) -> None:
    """
    Validate last frame interpolation

    Raises:
        VideoParameterValidationError: Unknown or unsupported model, or no initial image
    """
    capabilities = _require_capabilities(model)

    if not last_frame:
        return

    if not capabilities.supports_last_frame:
        raise VideoParameterValidationError(
            f"Model {model} does not support last frame interpolation. "
            f"This feature is only available in Veo 3.1 models. Current model: {model}",
            suggested_action="Use veo-3.1-generate-preview or veo-3.1-fast-generate-preview.",
        )

    if not has_initial_image:
        raise VideoParameterValidationError(
            "Last frame interpolation requires both an initial image and a last frame. "
            "Please provide an initial image.",
            suggested_action="Provide an initial image.",
        )


def max_remaining_extensions(current_duration: float) -> int:
    """Extensions that still fit under the final duration ceiling"""
    return max(0, math.floor((MAX_EXTENDED_DURATION - current_duration) / EXTENSION_SECONDS))


def validate_video_extension(model: str, current_duration: float, extension_count: int) -> None:
    """
    Validate a video extension chain

    The 141s and 148s ceilings are separate guards: the first rejects videos
    already too long to extend, the second rejects chains whose result would
    be too long.

    Raises:
        VideoParameterValidationError: Unknown or unsupported model, count out of
            range, or either duration ceiling exceeded
    """
    capabilities = _require_capabilities(model)

    if not capabilities.supports_extension:
        raise VideoParameterValidationError(
            f"Model {model} does not support video extension. "
            f"This feature is only available in Veo 3.1 models. Current model: {model}",
            suggested_action="Use veo-3.1-generate-preview or veo-3.1-fast-generate-preview.",
        )

    if extension_count < MIN_EXTENSION_COUNT or extension_count > MAX_EXTENSION_COUNT:
        raise VideoParameterValidationError(
            f"Extension count must be between {MIN_EXTENSION_COUNT} and {MAX_EXTENSION_COUNT}. "
            f"You requested {extension_count} extensions.",
            suggested_action=(
                f"Use an extension count between {MIN_EXTENSION_COUNT} and {MAX_EXTENSION_COUNT}."
            ),
        )

    if current_duration > MAX_EXTENDABLE_DURATION:
        raise VideoParameterValidationError(
            f"Video must be {MAX_EXTENDABLE_DURATION} seconds or less to extend. "
            f"Current duration: {current_duration}s. Maximum allowed: {MAX_EXTENDABLE_DURATION}s",
            suggested_action="Extend a shorter video.",
        )

    added = extension_count * EXTENSION_SECONDS
    final_duration = current_duration + added
    if final_duration > MAX_EXTENDED_DURATION:
        remaining = max_remaining_extensions(current_duration)
        raise VideoParameterValidationError(
            "Video extension would exceed maximum duration. "
            f"Current: {current_duration}s, Requested extensions: {extension_count} ({added}s), "
            f"Final would be: {final_duration}s, Maximum allowed: {MAX_EXTENDED_DURATION}s. "
            f"You can extend up to {remaining} more time(s).",
            suggested_action=f"Reduce extension count to {remaining}.",
            details={"maxExtensions": remaining},
        )


def validate_parameter_combination(
    model: str,
    resolution: Optional[str],
    duration: int,
    aspect_ratio: str,
    has_reference_images: bool = False,
    has_last_frame: bool = False,
) -> ValidationReport:
    """
    Check a full parameter set and collect every violated rule

    Unlike the single-purpose validators this never raises, so a client can
    show all problems at once before submitting.
    """
    capabilities = MODEL_CAPABILITIES.get(model)
    if capabilities is None:
        return ValidationReport(
            valid=False,
            errors=(f"Unknown video model: {model}. Please use a supported model.",),
        )

    errors: list[str] = []
    constraint = capabilities.aspect_ratio_constraints.get(aspect_ratio)

    if resolution and capabilities.supports_resolution:
        allowed = _allowed_durations(capabilities, aspect_ratio, resolution)
        if allowed and duration not in allowed:
            errors.append(
                f"{resolution} resolution with {aspect_ratio} aspect ratio requires duration "
                f"to be one of: {_format_durations(allowed)}s. You requested {duration}s. "
                f"Suggestion: Use {allowed[-1]}s duration."
            )
        if (
            resolution == RESOLUTION_1080P
            and constraint is not None
            and constraint.max_resolution == RESOLUTION_720P
        ):
            errors.append(
                f"Model {model} does not support 1080p for {aspect_ratio} aspect ratio. "
                f"Maximum resolution: {constraint.max_resolution}. Suggestion: Use 720p resolution."
            )

    if has_reference_images:
        if not capabilities.supports_reference_images:
            errors.append(
                f"Model {model} does not support reference images. "
                "Suggestion: Use Veo 3.1 or Veo 3.1 Fast models."
            )
        if aspect_ratio != REFERENCE_IMAGE_ASPECT_RATIO:
            errors.append(
                f"Reference images require {REFERENCE_IMAGE_ASPECT_RATIO} aspect ratio. "
                f"Current: {aspect_ratio}. Suggestion: Change aspect ratio to {REFERENCE_IMAGE_ASPECT_RATIO}."
            )
        if duration != FORCED_DURATION:
            errors.append(
                f"Reference images require {FORCED_DURATION}-second duration. "
                f"Current: {duration}s. Suggestion: Set duration to {FORCED_DURATION}s."
            )

    if has_last_frame:
        if not capabilities.supports_last_frame:
            errors.append(
                f"Model {model} does not support last frame interpolation. "
                "Suggestion: Use Veo 3.1 or Veo 3.1 Fast models."
            )
        if duration != FORCED_DURATION:
            errors.append(
                f"Last frame interpolation requires {FORCED_DURATION}-second duration. "
                f"Current: {duration}s. Suggestion: Set duration to {FORCED_DURATION}s."
            )

    return ValidationReport(valid=not errors, errors=tuple(errors))
