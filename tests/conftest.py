"""Test configuration for pytest."""

from __future__ import annotations

import os
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, List, Tuple

import pytest
from google.genai import types as genai_types
from PIL import Image

from dressme.config import Settings
from dressme.credentials import CredentialStore


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "ai: real API tests that may cost money")
    config.addinivalue_line("markers", "slow: tests expected to run longer than ~1 second")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_ai = os.getenv("RUN_AI_TESTS") == "1"
    skip_marker = pytest.mark.skip(reason="Set RUN_AI_TESTS=1 to run AI integration tests.")

    if run_ai:
        return

    for item in items:
        if "ai" in item.keywords:
            item.add_marker(skip_marker)


# ---------------------------------------------------------------------------
# Image helpers


def encode_image(
    pillow_format: str,
    size: Tuple[int, int] = (32, 48),
    mode: str = "RGB",
    color: Any = (200, 40, 120),
) -> bytes:
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, format=pillow_format)
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return encode_image


# ---------------------------------------------------------------------------
# Gemini fakes


def image_response(data: bytes) -> genai_types.GenerateContentResponse:
    return genai_types.GenerateContentResponse(
        candidates=[
            genai_types.Candidate(
                content=genai_types.Content(
                    role="model",
                    parts=[
                        genai_types.Part(text="Here is your look."),
                        genai_types.Part(
                            inline_data=genai_types.Blob(mime_type="image/png", data=data)
                        ),
                    ],
                )
            )
        ]
    )


def text_only_response(text: str = "I cannot do that.") -> genai_types.GenerateContentResponse:
    return genai_types.GenerateContentResponse(
        candidates=[
            genai_types.Candidate(
                content=genai_types.Content(role="model", parts=[genai_types.Part(text=text)])
            )
        ]
    )


def video_operation(name: str, *, done: bool, uri: str | None = None) -> genai_types.GenerateVideosOperation:
    response = None
    if done:
        videos = [genai_types.GeneratedVideo(video=genai_types.Video(uri=uri))] if uri else []
        response = genai_types.GenerateVideosResponse(generated_videos=videos)
    return genai_types.GenerateVideosOperation(name=name, done=done, response=response)


class FakeModels:
    """Stand-in for ``client.aio.models`` returning queued results."""

    def __init__(self, results: List[Any] | None = None, videos: List[Any] | None = None) -> None:
        self.results = list(results or [])
        self.videos = list(videos or [])
        self.calls: List[dict] = []
        self.video_calls: List[dict] = []

    async def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    async def generate_videos(self, **kwargs: Any) -> Any:
        self.video_calls.append(kwargs)
        result = self.videos.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


class FakeOperations:
    """Stand-in for ``client.aio.operations`` replaying a status sequence."""

    def __init__(self, sequence: List[Any], events: List[Tuple[str, Any]] | None = None) -> None:
        self.sequence = list(sequence)
        self.received: List[Any] = []
        self.events = events if events is not None else []

    async def get(self, operation: Any) -> Any:
        self.received.append(operation)
        self.events.append(("get", operation.name))
        return self.sequence.pop(0)


def fake_client(models: FakeModels | None = None, operations: FakeOperations | None = None) -> Any:
    return SimpleNamespace(
        aio=SimpleNamespace(models=models or FakeModels(), operations=operations or FakeOperations([]))
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(output_dir=tmp_path / "out", credential_file=tmp_path / "config" / "api_key")


@pytest.fixture
def credentials(settings: Settings) -> CredentialStore:
    return CredentialStore(settings.credential_file, env_var=None)


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Builders for fake Gemini clients and responses."""

    return SimpleNamespace(
        image_response=image_response,
        text_only_response=text_only_response,
        video_operation=video_operation,
        models=FakeModels,
        operations=FakeOperations,
        client=fake_client,
    )
