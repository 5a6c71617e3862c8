"""Veo video generation: start a job, poll it to completion, fetch the clip."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import httpx
from google import genai
from google.genai import types as genai_types

from dressme.config import Settings
from dressme.errors import (
    GenerationTimedOut,
    NoResultProduced,
    ProviderRejected,
    VideoDownloadFailed,
)
from dressme.gemini import REJECTED_STATUS_CODES, GeneratedImage, translate_rejections

logger = logging.getLogger("dressme.video")

DEFAULT_VIDEO_PROMPT: str = "A model posing fashionably, slow motion, elegant movement"
DOWNLOAD_TIMEOUT_SECONDS: float = 120.0

RefreshFn = Callable[[Any], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]


class JobStatus(Enum):
    PENDING = "pending"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class GenerationJob:
    """Snapshot of a provider-side video job."""

    provider_handle: Any
    status: JobStatus
    result_reference: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.status is JobStatus.DONE) != (self.result_reference is not None):
            raise ValueError("result_reference must be set exactly when the job is DONE.")

    @classmethod
    def from_operation(cls, operation: Any) -> "GenerationJob":
        if not operation.done:
            return cls(provider_handle=operation, status=JobStatus.PENDING)
        return cls(
            provider_handle=operation,
            status=JobStatus.DONE,
            result_reference=extract_video_uri(operation),
        )


@dataclass(frozen=True, slots=True)
class VideoAsset:
    """A downloaded clip, addressable on the local filesystem."""

    path: Path
    mime_type: str = "video/mp4"


async def poll_operation(
    operation: Any,
    refresh: RefreshFn,
    *,
    interval: float = 5.0,
    max_attempts: Optional[int] = None,
    sleep: SleepFn = asyncio.sleep,
) -> Any:
    """Wait ``interval`` seconds, refresh, repeat until ``operation.done``.

    Each refresh is given the operation returned by the previous one, since the
    provider may hand back a new handle on every poll. ``max_attempts=None``
    polls until the provider reports completion.
    """

    attempts = 0
    while not operation.done:
        if max_attempts is not None and attempts >= max_attempts:
            raise GenerationTimedOut(
                f"The video was not ready after {attempts} status checks. Try again later."
            )
        await sleep(interval)
        operation = await refresh(operation)
        attempts += 1
        logger.debug("Status check %d: done=%s", attempts, bool(operation.done))

    logger.info("Video operation finished after %d status checks", attempts)
    return operation


def extract_video_uri(operation: Any) -> str:
    """Return the locator of the first generated video, or raise ``NoResultProduced``."""

    response = getattr(operation, "response", None)
    videos = getattr(response, "generated_videos", None) or []
    video = getattr(videos[0], "video", None) if videos else None
    uri = getattr(video, "uri", None)
    if not uri:
        error = getattr(operation, "error", None)
        if error:
            logger.warning("Video operation finished with error: %s", error)
        raise NoResultProduced()
    return uri


async def start_video_generation(
    client: genai.Client,
    settings: Settings,
    image: GeneratedImage,
    prompt: str = DEFAULT_VIDEO_PROMPT,
) -> Any:
    logger.info("Starting video generation with %s", settings.video_model)
    with translate_rejections():
        return await client.aio.models.generate_videos(
            model=settings.video_model,
            prompt=prompt,
            image=genai_types.Image(image_bytes=image.data, mime_type=image.mime_type),
            config=genai_types.GenerateVideosConfig(
                number_of_videos=1,
                resolution=settings.video_resolution,
                aspect_ratio=settings.aspect_ratio,
            ),
        )


def _video_filename(base_name: str, mime_type: str) -> str:
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    ext = mimetypes.guess_extension(mime_type) or ".mp4"
    return f"{base_name}_{timestamp}{ext}"


async def download_video(
    uri: str,
    api_key: str,
    output_dir: Path,
    *,
    base_name: str = "dressme-video",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> VideoAsset:
    """Fetch the generated clip and store it under ``output_dir``."""

    # Merge rather than replace: the locator already carries ``alt=media``.
    url = httpx.URL(uri).copy_merge_params({"key": api_key})
    try:
        async with httpx.AsyncClient(
            timeout=DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True, transport=transport
        ) as client:
            response = await client.get(url)
    except httpx.HTTPError as exc:
        raise VideoDownloadFailed() from exc

    if response.status_code in REJECTED_STATUS_CODES:
        raise ProviderRejected(
            "The video could not be downloaded with this API key. Check that it has Veo access and billing enabled."
        )
    if response.is_error:
        raise VideoDownloadFailed(
            f"The generated video could not be downloaded (HTTP {response.status_code})."
        )

    content_type = response.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type == "application/octet-stream":
        mime_type = "video/mp4"
    elif content_type.startswith("video/"):
        mime_type = content_type
    else:
        raise VideoDownloadFailed(
            f"The download returned {content_type or 'an untyped body'} instead of a video."
        )

    output_dir.mkdir(parents=True, exist_ok=True)
    target_path = output_dir / _video_filename(base_name, mime_type)
    target_path.write_bytes(response.content)
    logger.info("Saved video to %s (%d bytes)", target_path, len(response.content))
    return VideoAsset(path=target_path, mime_type=mime_type)


async def generate_video(
    client: genai.Client,
    settings: Settings,
    image: GeneratedImage,
    api_key: str,
    *,
    prompt: str = DEFAULT_VIDEO_PROMPT,
    sleep: SleepFn = asyncio.sleep,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> VideoAsset:
    """Run the whole video flow for ``image`` and return the local clip."""

    async def refresh(operation: Any) -> Any:
        with translate_rejections():
            return await client.aio.operations.get(operation)

    operation = await start_video_generation(client, settings, image, prompt)
    operation = await poll_operation(
        operation,
        refresh,
        interval=settings.poll_interval,
        max_attempts=settings.poll_max_attempts,
        sleep=sleep,
    )
    job = GenerationJob.from_operation(operation)
    return await download_video(
        job.result_reference, api_key, settings.output_dir, transport=transport
    )
