"""Error types surfaced to DressMe users."""

from __future__ import annotations


class DressMeError(Exception):
    """Base error carrying a message that is safe to show to the end user."""

    default_message = "Something went wrong. Try again."

    def __init__(self, message: str | None = None) -> None:
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


class UnsupportedFormat(DressMeError):
    default_message = "This file type is not supported. Use a PNG, JPEG, WEBP, GIF, AVIF or HEIC image."


class ConversionFailed(DressMeError):
    default_message = "The image could not be read or converted. Try another file."


class MissingCredential(DressMeError):
    default_message = "API key not found. Run `dressme login` with your Gemini API key first."


class NoImageProduced(DressMeError):
    default_message = "No image was generated. Try again."


class NoResultProduced(DressMeError):
    default_message = "The video generation finished without producing a video."


class ProviderRejected(DressMeError):
    default_message = "Invalid API key or missing permission. Log out and try another key."


class JobAlreadyRunning(DressMeError):
    default_message = "Another generation is still running. Wait for it to finish."


class GenerationTimedOut(DressMeError):
    default_message = "The video generation did not finish in time."


class VideoDownloadFailed(DressMeError):
    default_message = "The generated video could not be downloaded."


class IncompleteLook(DressMeError):
    default_message = "Add a model photo and at least one clothing piece (top or bottom)."
