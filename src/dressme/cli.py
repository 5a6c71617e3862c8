"""Command line front end for DressMe.

Examples::

    dressme login
    dressme look --model me.heic --top shirt.webp --bottom jeans.jpg
    dressme background dressme-output/look.png "a rooftop in Lisbon at sunset"
    dressme video dressme-output/look.png
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from google.genai import errors as genai_errors

from dressme.config import Settings, load_settings
from dressme.credentials import CredentialStore
from dressme.errors import DressMeError
from dressme.studio import FashionStudio, Slot
from dressme.video import DEFAULT_VIDEO_PROMPT


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs full request URLs, which carry the API key on video downloads.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dressme",
        description="Mix clothing pieces, create looks and bring them to life with Gemini and Veo.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    parser.add_argument("--output-dir", type=Path, help="Where generated files are written.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Validate and store a Gemini API key.")
    login.add_argument("--key", help="API key (prompted for when omitted).")

    subparsers.add_parser("logout", help="Remove the stored API key.")

    look = subparsers.add_parser("look", help="Dress a model photo with a top and/or bottom.")
    look.add_argument("--model", type=Path, required=True, help="Photo of the person.")
    look.add_argument("--top", type=Path, help="Photo of the top piece.")
    look.add_argument("--bottom", type=Path, help="Photo of the bottom piece.")
    look.add_argument("--background", help="Optionally change the background afterwards.")
    look.add_argument("--video", action="store_true", help="Also animate the result with Veo.")
    look.add_argument("--video-prompt", default=DEFAULT_VIDEO_PROMPT)

    background = subparsers.add_parser("background", help="Change the background of an image.")
    background.add_argument("image", type=Path)
    background.add_argument("description")

    animate = subparsers.add_parser("video", help="Animate an image with Veo (paid keys only).")
    animate.add_argument("image", type=Path)
    animate.add_argument("--prompt", default=DEFAULT_VIDEO_PROMPT)

    return parser


async def _login(studio: FashionStudio, key: Optional[str]) -> int:
    api_key = key or getpass.getpass("Paste your Gemini API key: ")
    print("🔑 Validating key...")
    if not await studio.login(api_key):
        print("❌ Invalid or inactive key. Check it and try again.")
        return 1
    print(f"✅ Key stored in {studio.credentials.path}")
    return 0


async def _look(studio: FashionStudio, args: argparse.Namespace) -> int:
    output_dir = studio.settings.output_dir

    print("📚 Input images:")
    for slot, path in ((Slot.MODEL, args.model), (Slot.TOP, args.top), (Slot.BOTTOM, args.bottom)):
        if path is None:
            continue
        uploaded = studio.upload_path(slot, path)
        print(f"  - {slot.value}: {path} ({uploaded.mime_type})")

    print(f"🚀 Creating your look with {studio.settings.image_model}...")
    await studio.generate_look()
    print(f"✅ Look saved to {studio.save_generated_image(output_dir)}")

    if args.background:
        print("🎨 Updating the background...")
        await studio.edit_background(args.background)
        print(f"✅ Edited look saved to {studio.save_generated_image(output_dir, 'dressme-background')}")

    if args.video:
        await _animate(studio, args.video_prompt)
    return 0


async def _background(studio: FashionStudio, args: argparse.Namespace) -> int:
    studio.use_image(args.image)
    print("🎨 Updating the background...")
    await studio.edit_background(args.description)
    saved = studio.save_generated_image(studio.settings.output_dir, "dressme-background")
    print(f"✅ Edited image saved to {saved}")
    return 0


async def _animate(studio: FashionStudio, prompt: str) -> None:
    print(f"🎬 Generating video with {studio.settings.video_model} (this can take a few minutes)...")
    asset = await studio.generate_video(prompt)
    print(f"✅ Video saved to {asset.path}")


async def run(args: argparse.Namespace, settings: Settings) -> int:
    studio = FashionStudio(settings, CredentialStore(settings.credential_file))

    if args.command == "login":
        return await _login(studio, args.key)
    if args.command == "logout":
        studio.logout()
        print("👋 Stored API key removed.")
        return 0
    if args.command == "look":
        return await _look(studio, args)
    if args.command == "background":
        return await _background(studio, args)
    if args.command == "video":
        studio.use_image(args.image)
        await _animate(studio, args.prompt)
        return 0
    raise ValueError(f"Unknown command '{args.command}'.")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry-point used by the ``dressme`` console script."""

    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
        if args.output_dir is not None:
            settings.output_dir = args.output_dir
        configure_logging("DEBUG" if args.verbose else settings.log_level)
        return asyncio.run(run(args, settings))
    except (DressMeError, genai_errors.APIError, httpx.HTTPError, OSError, ValueError) as exc:
        print(f"❌ {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
