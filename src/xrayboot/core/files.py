"""Atomic file replacement.

Writers get a temporary file in the destination directory; the final
path is replaced with :func:`os.replace` only when the block finishes
without an exception, so readers never see a half-written file.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator


@contextlib.contextmanager
def atomic_target(path: str | Path, mode: int = 0o644) -> Generator[IO[bytes], None, None]:
    """Yield a binary temp file that replaces *path* on success."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            yield fh
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def atomic_write_text(path: str | Path, content: str) -> None:
    """Write *content* (UTF-8) to *path* atomically."""
    with atomic_target(path) as fh:
        fh.write(content.encode("utf-8"))
