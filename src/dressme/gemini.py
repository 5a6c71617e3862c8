"""Gemini request construction and image-model calls used by DressMe."""

from __future__ import annotations

import base64
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from dressme.config import Settings
from dressme.errors import NoImageProduced, ProviderRejected
from dressme.images import CANONICAL_MIME_TYPE, UploadedImage, to_data_uri

logger = logging.getLogger("dressme.gemini")

REJECTED_STATUS_CODES = frozenset({401, 403})

# ---------------------------------------------------------------------------
# Prompts

MODEL_LABEL: str = "This is the MODEL image (the person)."
TOP_LABEL: str = "This is the TOP PIECE (clothing)."
BOTTOM_LABEL: str = "This is the BOTTOM PIECE (clothing)."

LOOK_PROMPT: str = (
    "Create a realistic, high-quality fashion image (full-body photograph). "
    "Dress the provided MODEL in the provided TOP PIECE and BOTTOM PIECE. "
    "Keep the model's facial and body features as close to the original as possible. "
    "Fit the clothes so they sit naturally on the model's body. "
    "If a piece is missing (top or bottom), choose something neutral and stylish "
    "that matches the rest of the look. "
    "The result must look like a professional fashion photo."
)

BACKGROUND_PROMPT_TEMPLATE: str = (
    'Change the background or environment of this image based on the following description: "{description}". '
    "Keep the model and the clothes unchanged. Keep the {aspect_ratio} aspect ratio."
)


@dataclass(frozen=True, slots=True)
class GeneratedImage:
    """An image returned by the model, always treated as PNG."""

    data: bytes
    mime_type: str = CANONICAL_MIME_TYPE

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.data, self.mime_type)


def build_client(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


@contextmanager
def translate_rejections() -> Iterator[None]:
    """Turn provider authorisation failures into :class:`ProviderRejected`."""

    try:
        yield
    except genai_errors.ClientError as exc:
        if exc.code in REJECTED_STATUS_CODES:
            logger.warning("Provider rejected the request (HTTP %s)", exc.code)
            raise ProviderRejected() from exc
        raise


# ---------------------------------------------------------------------------
# Request construction helpers


def _inline_part(data: bytes, mime_type: str) -> genai_types.Part:
    return genai_types.Part(inline_data=genai_types.Blob(mime_type=mime_type, data=data))


def build_look_parts(
    model: UploadedImage,
    top: Optional[UploadedImage] = None,
    bottom: Optional[UploadedImage] = None,
) -> List[genai_types.Part]:
    """Model image first, then each garment, each followed by its label."""

    parts: List[genai_types.Part] = [
        _inline_part(model.encoded_bytes, model.mime_type),
        genai_types.Part(text=MODEL_LABEL),
    ]
    if top is not None:
        parts.append(_inline_part(top.encoded_bytes, top.mime_type))
        parts.append(genai_types.Part(text=TOP_LABEL))
    if bottom is not None:
        parts.append(_inline_part(bottom.encoded_bytes, bottom.mime_type))
        parts.append(genai_types.Part(text=BOTTOM_LABEL))

    parts.append(genai_types.Part(text=LOOK_PROMPT))
    return parts


def build_background_parts(
    image: GeneratedImage, description: str, aspect_ratio: str
) -> List[genai_types.Part]:
    stripped = description.strip()
    if not stripped:
        raise ValueError("Describe the new background before applying it.")

    return [
        _inline_part(image.data, image.mime_type),
        genai_types.Part(
            text=BACKGROUND_PROMPT_TEMPLATE.format(description=stripped, aspect_ratio=aspect_ratio)
        ),
    ]


def image_generation_config(settings: Settings) -> genai_types.GenerateContentConfig:
    return genai_types.GenerateContentConfig(
        image_config=genai_types.ImageConfig(
            aspect_ratio=settings.aspect_ratio,
            image_size=settings.image_size,
        ),
    )


def extract_first_image(
    response: genai_types.GenerateContentResponse, failure_message: str | None = None
) -> GeneratedImage:
    """Return the first inline image of the first candidate."""

    candidates = response.candidates or []
    content = candidates[0].content if candidates else None
    for part in (content.parts if content and content.parts else []):
        inline = getattr(part, "inline_data", None)
        if inline and getattr(inline, "data", None):
            return GeneratedImage(data=inline.data)

    raise NoImageProduced(failure_message)


# ---------------------------------------------------------------------------
# Model calls


async def _generate_image(
    client: genai.Client, settings: Settings, parts: List[genai_types.Part]
) -> genai_types.GenerateContentResponse:
    with translate_rejections():
        return await client.aio.models.generate_content(
            model=settings.image_model,
            contents=genai_types.Content(role="user", parts=parts),
            config=image_generation_config(settings),
        )


async def generate_fashion_look(
    client: genai.Client,
    settings: Settings,
    model: UploadedImage,
    top: Optional[UploadedImage] = None,
    bottom: Optional[UploadedImage] = None,
) -> GeneratedImage:
    """Dress ``model`` in the supplied garments and return the generated photo."""

    parts = build_look_parts(model, top, bottom)
    logger.info(
        "Requesting look from %s (top=%s, bottom=%s)",
        settings.image_model,
        top is not None,
        bottom is not None,
    )
    response = await _generate_image(client, settings, parts)
    return extract_first_image(response)


async def edit_background(
    client: genai.Client,
    settings: Settings,
    image: GeneratedImage,
    description: str,
) -> GeneratedImage:
    """Ask the model to swap the scenery around an already generated look."""

    parts = build_background_parts(image, description, settings.aspect_ratio)
    logger.info("Requesting background edit from %s", settings.image_model)
    response = await _generate_image(client, settings, parts)
    return extract_first_image(response, "The image could not be edited.")


async def validate_api_key(api_key: str, settings: Settings) -> bool:
    """Return ``True`` when a lightweight request with ``api_key`` succeeds."""

    client = build_client(api_key)
    try:
        await client.aio.models.generate_content(model=settings.validation_model, contents="test")
    except (genai_errors.APIError, httpx.HTTPError) as exc:
        logger.warning("API key validation failed: %s", exc)
        return False
    return True
