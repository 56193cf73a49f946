"""
External tool helpers shared by the video and PDF optimizers.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import List


def tool_available(name: str) -> bool:
    """Check if an executable is on PATH."""
    return shutil.which(name) is not None


def run_tool(cmd: List[str], timeout: int) -> subprocess.CompletedProcess:
    """Run an external tool, capturing its output as text."""
    return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
