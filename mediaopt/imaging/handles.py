"""
Display handles — temporary files that expose result bytes to viewers.

A handle is an external resource. Nothing tracks issued handles; each
one stays on disk until its owner calls release().
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "mediaopt_"


class DisplayHandle:
    """A temporary file holding a copy of some output bytes."""

    def __init__(self, path: Path, mime_type: str):
        self.path = path
        self.mime_type = mime_type
        self._released = False

    @classmethod
    def create(
        cls,
        data: bytes,
        mime_type: str,
        suffix: str = "",
        directory: Optional[Union[str, Path]] = None,
    ) -> "DisplayHandle":
        """Write ``data`` to a fresh temporary file and wrap it."""
        if directory is not None:
            Path(directory).mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=HANDLE_PREFIX, suffix=suffix, dir=directory)
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
        except OSError:
            path.unlink(missing_ok=True)
            raise
        return cls(path, mime_type)

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the backing file. Safe to call more than once."""
        if self._released:
            return
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove display handle {self.path}: {e}")
            return
        self._released = True

    def __enter__(self) -> "DisplayHandle":
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"DisplayHandle({self.path.name}, {state})"
