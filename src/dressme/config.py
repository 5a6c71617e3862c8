"""Runtime settings for DressMe, read from the environment (via ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Defaults. Adjust the model identifiers if Google renames them.

IMAGE_MODEL: str = "gemini-3-pro-image-preview"
VIDEO_MODEL: str = "veo-3.1-fast-generate-preview"
VALIDATION_MODEL: str = "gemini-2.5-flash"

# Vertical, stories-friendly output.
ASPECT_RATIO: str = "9:16"
IMAGE_SIZE: str = "1K"
VIDEO_RESOLUTION: str = "720p"

POLL_INTERVAL_SECONDS: float = 5.0

OUTPUT_DIR: Path = Path("dressme-output")
CREDENTIAL_FILE: Path = Path("~/.config/dressme/api_key")


@dataclass(slots=True)
class Settings:
    """Values shared by the Gemini client layer, the poller and the CLI."""

    image_model: str = IMAGE_MODEL
    video_model: str = VIDEO_MODEL
    validation_model: str = VALIDATION_MODEL
    aspect_ratio: str = ASPECT_RATIO
    image_size: str = IMAGE_SIZE
    video_resolution: str = VIDEO_RESOLUTION
    poll_interval: float = POLL_INTERVAL_SECONDS
    # None polls until the provider reports completion.
    poll_max_attempts: Optional[int] = None
    output_dir: Path = field(default_factory=lambda: OUTPUT_DIR)
    credential_file: Path = field(default_factory=lambda: CREDENTIAL_FILE.expanduser())
    log_level: str = "WARNING"


def _optional_int(raw: str | None, name: str) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from exc
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}.")
    return value


def load_settings() -> Settings:
    """Build :class:`Settings` from ``DRESSME_*`` environment variables."""

    load_dotenv()

    poll_interval_raw = os.getenv("DRESSME_POLL_INTERVAL")
    try:
        poll_interval = float(poll_interval_raw) if poll_interval_raw else POLL_INTERVAL_SECONDS
    except ValueError as exc:
        raise ValueError(
            f"DRESSME_POLL_INTERVAL must be a number of seconds, got '{poll_interval_raw}'."
        ) from exc
    if poll_interval < 0:
        raise ValueError("DRESSME_POLL_INTERVAL cannot be negative.")

    credential_file = os.getenv("DRESSME_CREDENTIAL_FILE")

    return Settings(
        image_model=os.getenv("DRESSME_IMAGE_MODEL", IMAGE_MODEL),
        video_model=os.getenv("DRESSME_VIDEO_MODEL", VIDEO_MODEL),
        validation_model=os.getenv("DRESSME_VALIDATION_MODEL", VALIDATION_MODEL),
        aspect_ratio=os.getenv("DRESSME_ASPECT_RATIO", ASPECT_RATIO),
        image_size=os.getenv("DRESSME_IMAGE_SIZE", IMAGE_SIZE),
        video_resolution=os.getenv("DRESSME_VIDEO_RESOLUTION", VIDEO_RESOLUTION),
        poll_interval=poll_interval,
        poll_max_attempts=_optional_int(
            os.getenv("DRESSME_POLL_MAX_ATTEMPTS"), "DRESSME_POLL_MAX_ATTEMPTS"
        ),
        output_dir=Path(os.getenv("DRESSME_OUTPUT_DIR") or OUTPUT_DIR),
        credential_file=Path(credential_file or CREDENTIAL_FILE).expanduser(),
        log_level=os.getenv("DRESSME_LOG_LEVEL", "WARNING").upper(),
    )
