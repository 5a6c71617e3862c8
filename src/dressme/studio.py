"""In-memory DressMe session: upload slots, current look and current video."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import httpx
from google import genai

from dressme import gemini, video
from dressme.config import Settings
from dressme.credentials import CredentialStore
from dressme.errors import IncompleteLook
from dressme.gemini import GeneratedImage, build_client, validate_api_key
from dressme.images import UploadedImage, normalize_image, normalize_path
from dressme.jobs import JobRegistry
from dressme.video import DEFAULT_VIDEO_PROMPT, SleepFn, VideoAsset

logger = logging.getLogger("dressme.studio")


class Slot(Enum):
    MODEL = "model"
    TOP = "top"
    BOTTOM = "bottom"


class FashionStudio:
    """One user's session. Nothing here is persisted except the API key."""

    def __init__(
        self,
        settings: Settings,
        credentials: CredentialStore,
        *,
        client_factory: Callable[[str], genai.Client] = build_client,
        sleep: SleepFn = asyncio.sleep,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.credentials = credentials
        self.registry = JobRegistry()
        self._client_factory = client_factory
        self._sleep = sleep
        self._transport = transport
        self._slots: Dict[Slot, UploadedImage] = {}
        self.generated_image: Optional[GeneratedImage] = None
        self.generated_video: Optional[VideoAsset] = None

    # ------------------------------------------------------------------
    # Credentials

    @property
    def has_api_key(self) -> bool:
        return self.credentials.get() is not None

    async def login(self, api_key: str) -> bool:
        """Validate ``api_key`` with a lightweight request and store it if it works."""

        api_key = api_key.strip()
        if not api_key:
            raise ValueError("Please enter an API key.")
        if not await validate_api_key(api_key, self.settings):
            return False
        self.credentials.set(api_key)
        return True

    def logout(self) -> None:
        """Forget the stored key and everything uploaded or generated."""

        self.credentials.remove()
        self._slots.clear()
        self.generated_image = None
        self.generated_video = None

    def _client(self) -> Tuple[genai.Client, str]:
        api_key = self.credentials.require()
        return self._client_factory(api_key), api_key

    # ------------------------------------------------------------------
    # Upload slots

    def image(self, slot: Slot) -> Optional[UploadedImage]:
        return self._slots.get(slot)

    def upload(self, slot: Slot, data: bytes, content_type: str, name: str = "upload") -> UploadedImage:
        uploaded = normalize_image(data, content_type, name=name)
        self._slots[slot] = uploaded
        return uploaded

    def upload_path(self, slot: Slot, path: Path) -> UploadedImage:
        uploaded = normalize_path(path)
        self._slots[slot] = uploaded
        return uploaded

    def clear(self, slot: Slot) -> None:
        self._slots.pop(slot, None)

    def use_image(self, path: Path) -> GeneratedImage:
        """Adopt an image from disk as the current look (for later edits or video)."""

        uploaded = normalize_path(path)
        self.generated_image = GeneratedImage(data=uploaded.encoded_bytes, mime_type=uploaded.mime_type)
        self.generated_video = None
        return self.generated_image

    @property
    def can_generate(self) -> bool:
        return Slot.MODEL in self._slots and (Slot.TOP in self._slots or Slot.BOTTOM in self._slots)

    @property
    def can_generate_video(self) -> bool:
        return self.generated_image is not None

    # ------------------------------------------------------------------
    # Generation

    async def generate_look(self) -> GeneratedImage:
        if not self.can_generate:
            raise IncompleteLook()

        with self.registry.claim("look"):
            client, _ = self._client()
            self.generated_video = None
            result = await gemini.generate_fashion_look(
                client,
                self.settings,
                self._slots[Slot.MODEL],
                self._slots.get(Slot.TOP),
                self._slots.get(Slot.BOTTOM),
            )
        self.generated_image = result
        return result

    async def edit_background(self, description: str) -> GeneratedImage:
        """Replace the current image with a background-edited version.

        On failure the current image is left as it was.
        """

        if self.generated_image is None:
            raise IncompleteLook("Generate a look before changing its background.")

        with self.registry.claim("background"):
            client, _ = self._client()
            result = await gemini.edit_background(
                client, self.settings, self.generated_image, description
            )
        self.generated_image = result
        self.generated_video = None
        return result

    async def generate_video(self, prompt: str = DEFAULT_VIDEO_PROMPT) -> VideoAsset:
        if self.generated_image is None:
            raise IncompleteLook("Generate a look before animating it.")

        with self.registry.claim("video"):
            client, api_key = self._client()
            asset = await video.generate_video(
                client,
                self.settings,
                self.generated_image,
                api_key,
                prompt=prompt,
                sleep=self._sleep,
                transport=self._transport,
            )
        self.generated_video = asset
        return asset

    def save_generated_image(self, output_dir: Path, base_name: str = "dressme-look") -> Path:
        """Write the current image to ``output_dir`` and return its path."""

        if self.generated_image is None:
            raise IncompleteLook("There is no generated image to save yet.")

        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        target_path = output_dir / f"{base_name}_{timestamp}.png"
        target_path.write_bytes(self.generated_image.data)
        logger.info("Saved image to %s", target_path)
        return target_path
