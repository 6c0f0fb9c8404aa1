"""Scoped temporary files for handing audio to external tools."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

TEMP_PREFIX = "interview-coach-"


@contextlib.contextmanager
def scoped_temp_file(
    suffix: str = "",
    data: Optional[bytes] = None,
    directory: Optional[str | Path] = None,
) -> Iterator[Path]:
    """Yield the path of a fresh temporary file, deleting it on exit.

    When ``data`` is given it is written before the path is yielded. The file
    is removed however the block exits, including when writing fails.
    """
    fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=suffix, dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as handle:
            if data:
                handle.write(data)
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.error("Failed to remove temporary file %s", path, exc_info=True)
