"""Key to blob persistence on the local filesystem."""

from __future__ import annotations

from pathlib import Path
from typing import Union

from .errors import ContentNotFoundError
from .utils import atomic_write_bytes

PathLike = Union[str, Path]


class ContentStore:
    """Blobs stored as files below ``root``.

    Relative paths resolve against the root, absolute paths are used as-is.
    There is no locking: callers must not write the same path concurrently.
    """

    def __init__(self, root: PathLike) -> None:
        self.root = Path(root)

    def resolve(self, path: PathLike) -> Path:
        return self.root / Path(path)

    def exists(self, path: PathLike) -> bool:
        return self.resolve(path).is_file()

    def read(self, path: PathLike) -> bytes:
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise ContentNotFoundError(f"No stored content at {target}") from exc

    def write(self, path: PathLike, data: bytes) -> Path:
        target = self.resolve(path)
        atomic_write_bytes(target, data)
        return target
