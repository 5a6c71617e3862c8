"""Storage for the single Gemini API key used by DressMe."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from dressme.errors import MissingCredential

logger = logging.getLogger("dressme.credentials")

ENV_VAR: str = "GEMINI_API_KEY"


class CredentialStore:
    """Keeps one API key in a small file under the user's config directory.

    When no key has been stored, :meth:`get` falls back to ``GEMINI_API_KEY``
    from the environment (or a ``.env`` file).
    """

    def __init__(self, path: Path, *, env_var: str | None = ENV_VAR) -> None:
        self.path = Path(path)
        self.env_var = env_var

    def get(self) -> str | None:
        if self.path.exists():
            key = self.path.read_text(encoding="utf-8").strip()
            if key:
                return key
        if self.env_var:
            load_dotenv()
            key = (os.getenv(self.env_var) or "").strip()
            if key:
                return key
        return None

    def set(self, key: str) -> None:
        key = key.strip()
        if not key:
            raise ValueError("Refusing to store an empty API key.")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Created owner-only so the key is never briefly world-readable.
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(key)
        # An existing file keeps its old mode through O_CREAT.
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.warning("Could not restrict permissions on %s", self.path)
        logger.info("Stored API key in %s", self.path)

    def remove(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("Removed stored API key %s", self.path)

    def require(self) -> str:
        """Return the key or raise :class:`MissingCredential`."""

        key = self.get()
        if not key:
            raise MissingCredential()
        return key
