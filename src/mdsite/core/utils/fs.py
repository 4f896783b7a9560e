"""Filesystem helpers: atomic file replacement and the build directory lock"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from filelock import FileLock, Timeout

from mdsite.core.errors import BuildLocked


logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write data to a sibling temp file, fsync it, then os.replace over path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + f".tmp-{os.getpid()}")
    try:
        with open(tmp, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    os.replace(tmp, path)


def remove_output(output_dir: Path, rel_path: str) -> None:
    """Delete an output file and any directories it leaves empty below output_dir."""
    path = output_dir / rel_path
    path.unlink(missing_ok=True)
    parent = path.parent
    while parent != output_dir and parent.is_dir() and not any(parent.iterdir()):
        parent.rmdir()
        parent = parent.parent


@contextmanager
def build_lock(lock_path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on lock_path without waiting. Raises BuildLocked if taken."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    try:
        lock.acquire(timeout=0)
    except Timeout as e:
        raise BuildLocked(f"Another build is running against {lock_path.parent.parent}") from e
    logger.debug("acquired build lock %s", lock_path)
    try:
        yield lock_path
    finally:
        lock.release()
