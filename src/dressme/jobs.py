"""Single-slot registry allowing one generation at a time per session."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from dressme.errors import JobAlreadyRunning

logger = logging.getLogger("dressme.jobs")


class JobRegistry:
    """Holds the label of the in-flight generation, if any."""

    def __init__(self) -> None:
        self._active: Optional[str] = None

    @property
    def active(self) -> Optional[str]:
        return self._active

    @property
    def busy(self) -> bool:
        return self._active is not None

    @contextmanager
    def claim(self, label: str) -> Iterator[None]:
        """Occupy the slot for the duration of the ``with`` block.

        The slot is released whether the block succeeds or raises.
        """

        if self._active is not None:
            raise JobAlreadyRunning(
                f"'{self._active}' is still running. Wait for it to finish before starting '{label}'."
            )
        self._active = label
        logger.debug("Claimed job slot for %s", label)
        try:
            yield
        finally:
            self._active = None
            logger.debug("Released job slot for %s", label)
