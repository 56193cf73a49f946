"""
Batch operations — optimize many images at once and bundle the results.

Each image gets its own optimize() call; all of them run concurrently
and one failure never aborts the rest. Archives store each result under
its suggested filename. Colliding names are not renamed: zipfile writes
both entries (with a UserWarning) and readers usually see the last one.
"""

from __future__ import annotations

import asyncio
import io
import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

from ..config.loader import OptimizerConfig, get_config
from ..models.image import EncodeSettings, OptimizedResult, SourceImage
from .errors import OptimizationError
from .pipeline import optimize_source

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "optimized_images_"


@dataclass
class BatchOutcome:
    """Result or error for one input of a batch, in input order."""

    source: SourceImage
    result: Optional[OptimizedResult] = None
    error: Optional[OptimizationError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


async def optimize_many(
    sources: Sequence[SourceImage],
    settings: EncodeSettings,
    *,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None,
    preview_dir: Optional[str] = None,
    workers: Optional[int] = None,
    config: Optional[OptimizerConfig] = None,
) -> List[BatchOutcome]:
    """
    Optimize every source concurrently.

    Pipeline errors are captured per item. Anything else (a bug, an
    OSError writing a display handle) propagates after every item has
    finished, and any handles already issued are released first.

    Args:
        sources: Images to optimize.
        settings: Quality and format shared by the whole batch.
        workers: Thread count; None uses the loop's default executor.
        config: Supplies unset bounds and preview_dir for every item.

    Raises:
        ConfigurationError: A default is needed and the global config is
            invalid. Raised before any image is processed.
    """
    if config is None and (not max_width or not max_height or preview_dir is None):
        config = get_config()

    executor = ThreadPoolExecutor(max_workers=workers) if workers else None
    try:
        results = await asyncio.gather(
            *(
                optimize_source(
                    source,
                    settings,
                    max_width=max_width,
                    max_height=max_height,
                    preview_dir=preview_dir,
                    executor=executor,
                    config=config,
                )
                for source in sources
            ),
            return_exceptions=True,
        )
    finally:
        if executor is not None:
            executor.shutdown(wait=False)

    outcomes: List[BatchOutcome] = []
    unexpected: Optional[BaseException] = None
    for source, item in zip(sources, results):
        if isinstance(item, OptimizationError):
            outcomes.append(BatchOutcome(source=source, error=item))
        elif isinstance(item, BaseException):
            unexpected = unexpected or item
        else:
            outcomes.append(BatchOutcome(source=source, result=item))

    if unexpected is not None:
        for outcome in outcomes:
            if outcome.result is not None:
                outcome.result.release()
        raise unexpected

    succeeded = sum(1 for o in outcomes if o.ok)
    logger.info(f"Batch finished: {succeeded}/{len(outcomes)} images optimized")
    return outcomes


def archive_name(day: Optional[date] = None) -> str:
    """Name for a batch download, e.g. ``optimized_images_2026-10-18.zip``."""
    day = day or date.today()
    return f"{ARCHIVE_PREFIX}{day.isoformat()}.zip"


def build_zip_archive(results: Iterable[OptimizedResult]) -> bytes:
    """Pack results into an in-memory ZIP, one entry per suggested filename."""
    buf = io.BytesIO()
    count = 0
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zipf:
        for result in results:
            zipf.writestr(result.filename, result.data)
            count += 1

    data = buf.getvalue()
    logger.debug(f"Built ZIP archive: {count} entries, {len(data):,} bytes")
    return data
