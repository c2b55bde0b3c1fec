"""File operations: fingerprinting, atomic write, locking."""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
import time
from io import TextIOWrapper
from pathlib import Path

import portalocker


def fingerprint(path: str | Path) -> str:
    """Compute SHA-256 fingerprint of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return f"sha256:{h.hexdigest()}"


def atomic_write(target: str | Path, data: bytes, *, mode: int | None = None) -> None:
    """Write data to target atomically via temp file + rename."""
    target = Path(target)
    fd, tmp_path = tempfile.mkstemp(
        dir=target.parent, suffix=target.suffix, prefix=".gristctl_tmp_"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        shutil.move(tmp_path, target)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class locked:
    """Exclusive sidecar lock around a read-modify-write of ``path``.

    Uses a ``<file>.lock`` sidecar so two ``gristctl`` processes never write
    the same file at once. On process crash the OS releases the lock; the
    sidecar may remain on disk but is stale and can be re-acquired.
    """

    def __init__(self, path: str | Path, *, timeout: float = 5.0) -> None:
        self.path = Path(path).resolve()
        self.timeout = timeout
        self._lock_path = self.path.parent / (self.path.name + ".lock")
        self._lock_file: TextIOWrapper | None = None

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    def __enter__(self) -> "locked":
        self._lock_file = open(self._lock_path, "a+")  # noqa: SIM115
        deadline = time.monotonic() + self.timeout
        try:
            while True:
                try:
                    portalocker.lock(self._lock_file, portalocker.LOCK_EX | portalocker.LOCK_NB)
                    break
                except portalocker.LockException:
                    if time.monotonic() >= deadline:
                        raise
                    time.sleep(0.05)
        except portalocker.LockException:
            self._lock_file.close()
            self._lock_file = None
            raise
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if self._lock_file is not None:
            try:
                portalocker.unlock(self._lock_file)
            finally:
                self._lock_file.close()
                self._lock_file = None


def read_text_safe(path: str | Path) -> str:
    """Read a text file with UTF-8 BOM tolerance.

    Uses ``utf-8-sig`` encoding which silently strips a leading BOM when
    present, while reading plain UTF-8 correctly.
    """
    return Path(path).read_text(encoding="utf-8-sig")
