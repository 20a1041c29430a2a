"""Inter-process lock and atomic JSON writes for files shared with the dashboard."""

from __future__ import annotations

import json
import os
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Iterator

try:  # windows
    import msvcrt
except ImportError:
    msvcrt = None  # type: ignore[assignment]

try:  # unix
    import fcntl
except ImportError:
    fcntl = None  # type: ignore[assignment]


class StateFileLockError(RuntimeError):
    """Raised when the file lock cannot be acquired in time."""


def _try_lock(handle: Any) -> None:
    if msvcrt is not None:
        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError as exc:
            raise BlockingIOError(str(exc)) from exc
    elif fcntl is not None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _unlock(handle: Any) -> None:
    if msvcrt is not None:
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    elif fcntl is not None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def state_file_lock(target_path: str, timeout_seconds: float = 1.0, poll_seconds: float = 0.02) -> Iterator[None]:
    """Hold `<target>.lock` exclusively for the duration of the block."""
    lock_path = f"{target_path}.lock"
    os.makedirs(os.path.dirname(lock_path) or ".", exist_ok=True)
    deadline = time.monotonic() + timeout_seconds

    with open(lock_path, "a+b") as handle:
        # msvcrt locks a byte range, so the file needs at least one byte
        handle.seek(0, os.SEEK_END)
        if handle.tell() == 0:
            handle.write(b"0")
            handle.flush()

        while True:
            try:
                _try_lock(handle)
                break
            except BlockingIOError as exc:
                if time.monotonic() >= deadline:
                    raise StateFileLockError(f"Timed out locking {target_path}") from exc
                time.sleep(poll_seconds)
        try:
            yield
        finally:
            _unlock(handle)


def atomic_write_json(path: str, payload: Any, indent: int = 2) -> None:
    """Write JSON via a temp file in the same directory, then replace."""
    directory = os.path.dirname(str(path)) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f"{os.path.basename(str(path))}.", suffix=".tmp", dir=directory, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=indent)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.remove(tmp_path)
        except OSError:
            pass
        raise
