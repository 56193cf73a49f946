"""
Media Models — results of the external-tool optimizers (video, PDF).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class MediaResult:
    """
    Bytes produced by an external optimizer.

    When the tool is missing, fails, or does not shrink the input,
    ``data`` is the original payload and ``was_optimized`` is False.
    """

    data: bytes
    mime_type: str
    extension: str
    original_size: int
    was_optimized: bool = False

    @property
    def size(self) -> int:
        return len(self.data)
