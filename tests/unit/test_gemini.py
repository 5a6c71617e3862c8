"""Unit tests for Gemini request construction and response handling."""

from __future__ import annotations

import pytest
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from dressme import gemini
from dressme.errors import NoImageProduced, ProviderRejected
from dressme.gemini import (
    BOTTOM_LABEL,
    LOOK_PROMPT,
    MODEL_LABEL,
    TOP_LABEL,
    GeneratedImage,
    build_background_parts,
    build_look_parts,
    edit_background,
    extract_first_image,
    generate_fashion_look,
    validate_api_key,
)
from dressme.images import normalize_image


def _client_error(code: int) -> genai_errors.ClientError:
    return genai_errors.ClientError(code, {"error": {"code": code, "message": "nope", "status": "DENIED"}})


@pytest.fixture
def model_image(make_image):
    return normalize_image(make_image("PNG"), "image/png", name="model.png")


@pytest.fixture
def top_image(make_image):
    return normalize_image(make_image("JPEG"), "image/jpeg", name="top.jpg")


def test_look_parts_pair_each_image_with_its_label(model_image, top_image) -> None:
    parts = build_look_parts(model_image, top=top_image)

    assert parts[0].inline_data.data == model_image.encoded_bytes
    assert parts[0].inline_data.mime_type == "image/png"
    assert parts[1].text == MODEL_LABEL
    assert parts[2].inline_data.mime_type == "image/jpeg"
    assert parts[3].text == TOP_LABEL
    assert parts[-1].text == LOOK_PROMPT
    assert BOTTOM_LABEL not in [part.text for part in parts]


def test_look_parts_with_both_garments(model_image, top_image) -> None:
    parts = build_look_parts(model_image, top=top_image, bottom=top_image)

    assert [part.text for part in parts if part.text] == [MODEL_LABEL, TOP_LABEL, BOTTOM_LABEL, LOOK_PROMPT]


def test_background_parts_embed_description() -> None:
    parts = build_background_parts(GeneratedImage(data=b"png"), "  a beach at sunset ", "9:16")

    assert parts[0].inline_data.data == b"png"
    assert '"a beach at sunset"' in parts[1].text
    assert "9:16" in parts[1].text


def test_background_parts_require_description() -> None:
    with pytest.raises(ValueError):
        build_background_parts(GeneratedImage(data=b"png"), "   ", "9:16")


def test_extract_first_image_skips_text_parts(fakes) -> None:
    image = extract_first_image(fakes.image_response(b"generated"))

    assert image.data == b"generated"
    assert image.mime_type == "image/png"
    assert image.data_uri.startswith("data:image/png;base64,")


def test_extract_first_image_without_inline_data(fakes) -> None:
    with pytest.raises(NoImageProduced):
        extract_first_image(fakes.text_only_response())
    with pytest.raises(NoImageProduced):
        extract_first_image(genai_types.GenerateContentResponse(candidates=[]))


@pytest.mark.asyncio
async def test_generate_fashion_look_sends_parts_and_image_config(fakes, settings, model_image, top_image) -> None:
    models = fakes.models([fakes.image_response(b"look")])

    result = await generate_fashion_look(fakes.client(models), settings, model_image, top=top_image)

    assert result.data == b"look"
    call = models.calls[0]
    assert call["model"] == "gemini-3-pro-image-preview"
    assert call["contents"].parts[1].text == MODEL_LABEL
    assert call["config"].image_config.aspect_ratio == "9:16"
    assert call["config"].image_config.image_size == "1K"


@pytest.mark.asyncio
async def test_forbidden_becomes_provider_rejected(fakes, settings, model_image) -> None:
    models = fakes.models([_client_error(403)])

    with pytest.raises(ProviderRejected):
        await generate_fashion_look(fakes.client(models), settings, model_image)


@pytest.mark.asyncio
async def test_other_client_errors_propagate(fakes, settings, model_image) -> None:
    models = fakes.models([_client_error(400)])

    with pytest.raises(genai_errors.ClientError):
        await generate_fashion_look(fakes.client(models), settings, model_image)


@pytest.mark.asyncio
async def test_edit_background_without_image_fails(fakes, settings) -> None:
    models = fakes.models([fakes.text_only_response()])

    with pytest.raises(NoImageProduced, match="could not be edited"):
        await edit_background(fakes.client(models), settings, GeneratedImage(data=b"png"), "a forest")


@pytest.mark.asyncio
async def test_validate_api_key(monkeypatch, fakes, settings) -> None:
    good = fakes.models([fakes.text_only_response("ok")])
    monkeypatch.setattr(gemini, "build_client", lambda api_key: fakes.client(good))

    assert await validate_api_key("good-key", settings) is True
    assert good.calls[0] == {"model": "gemini-2.5-flash", "contents": "test"}

    bad = fakes.models([_client_error(400)])
    monkeypatch.setattr(gemini, "build_client", lambda api_key: fakes.client(bad))

    assert await validate_api_key("bad-key", settings) is False
