from __future__ import annotations

import mimetypes
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Iterable, Iterator

import structlog

from .models import SelectedFile

logger = structlog.get_logger("file_selection")

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileSelectionCancelled(Exception):
    """Raised inside a selection block when the user dismisses the picker."""


@contextmanager
def select_files(paths: Iterable[str | Path]) -> Iterator[list[SelectedFile]]:
    """Open the picked files for the duration of the block.

    Every handle is closed on exit, whether the block finishes, fails or is
    cancelled. Cancellation ends the block quietly.
    """
    with ExitStack() as stack:
        files: list[SelectedFile] = []
        for raw_path in paths:
            path = Path(raw_path)
            handle = stack.enter_context(path.open("rb"))
            content = handle.read()
            mime_type, _ = mimetypes.guess_type(path.name)
            files.append(
                SelectedFile(
                    name=path.name,
                    mime_type=mime_type or DEFAULT_MIME_TYPE,
                    size=len(content),
                    content=content,
                )
            )
        try:
            yield files
        except FileSelectionCancelled:
            logger.info("file_selection_cancelled", count=len(files))
