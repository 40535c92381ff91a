"""Local file store - durable byte storage under a root directory."""

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

TMP_SUFFIX = ".tmp"


class LocalFileStore:
    """DurableStore backed by the local filesystem.

    Keys are relative POSIX paths (``"deploy/abc123.json"``). Writes go to a temp
    file in the destination directory, are fsynced, then renamed over the target,
    so a crash leaves either the old or the new content, never a mix.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        root = self._root.resolve()
        if path != root and root not in path.parents:
            raise ValueError(f"Key escapes store root: {key!r}")
        return path

    def read_bytes(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def write_bytes_atomic(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(suffix=TMP_SUFFIX, prefix=path.stem + "_", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Deleted %s", path)
        return True

    def list_keys(self, prefix: str = "", suffix: str = "") -> list[str]:
        base = self._path(prefix) if prefix else self._root
        if not base.is_dir():
            return []
        keys = []
        for path in sorted(base.rglob(f"*{suffix}")):
            if not path.is_file() or path.name.endswith(TMP_SUFFIX):
                continue
            keys.append(path.relative_to(self._root).as_posix())
        return keys
