"""Content store: opaque byte storage addressed by key.

Keys look like ``<owner_id>/<stem>-<millis>-<random><ext>``. The first
segment is the account's *area*; the path reconciler searches areas when a
node's key has gone stale.
"""

import logging
import os
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional

from ..exceptions import ContentKeyNotFoundError, ValidationError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w.\- ()]+")


@dataclass(frozen=True)
class ContentEntry:
    """One object found while listing an area."""

    key: str
    size: int

    @property
    def name(self) -> str:
        return self.key.rsplit("/", 1)[-1]


class ContentStore:
    """Interface every content store implements."""

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def read(self, key: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Return a chunk iterator. Raises ContentKeyNotFoundError up front."""
        raise NotImplementedError

    def write(self, key: str, stream: BinaryIO, max_bytes: Optional[int] = None,
              chunk_size: int = 64 * 1024) -> int:
        """Stream *stream* into *key*; return the number of bytes written."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def list(self, area: str) -> List[ContentEntry]:
        """All objects under *area*, sorted by key."""
        raise NotImplementedError

    def areas(self) -> List[str]:
        """All area names, sorted."""
        raise NotImplementedError

    @staticmethod
    def new_key(owner_id: str, original_name: str) -> str:
        """Fresh key for an upload, unique per call in practice."""
        base = os.path.basename(original_name.replace("\\", "/")) or "file"
        stem, ext = os.path.splitext(base)
        stem = _UNSAFE_CHARS.sub("_", stem).strip() or "file"
        ext = _UNSAFE_CHARS.sub("", ext)
        millis = int(time.time() * 1000)
        suffix = random.randint(0, 10**9 - 1)
        return f"{owner_id}/{stem}-{millis}-{suffix}{ext}"


class LocalContentStore(ContentStore):
    """Content store backed by a directory on the local filesystem."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    # Safe join: keys must stay inside the root.
    def _resolve(self, key: str) -> Path:
        rel = key.strip().lstrip("/")
        if not rel:
            raise ValidationError("Empty content key", field="key")
        candidate = (self.root / rel).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise ValidationError(f"Content key escapes the store root: {key}", field="key") from exc
        return candidate

    def exists(self, key: str) -> bool:
        try:
            return self._resolve(key).is_file()
        except ValidationError:
            return False

    def read(self, key: str, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        target = self._resolve(key)
        if not target.is_file():
            raise ContentKeyNotFoundError(key)
        handle = open(target, "rb")

        def _chunks() -> Iterator[bytes]:
            with handle:
                while True:
                    chunk = handle.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk

        return _chunks()

    def write(self, key: str, stream: BinaryIO, max_bytes: Optional[int] = None,
              chunk_size: int = 64 * 1024) -> int:
        target = self._resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = stream.read(chunk_size)
                    if not chunk:
                        break
                    written += len(chunk)
                    if max_bytes is not None and written > max_bytes:
                        raise ValidationError(
                            f"File exceeds the upload limit of {max_bytes} bytes",
                            field="file",
                        )
                    out.write(chunk)
        except BaseException:
            self._discard(target)
            raise
        logger.debug("Wrote content object", extra={"key": key, "size": written})
        return written

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            target.unlink()
        except FileNotFoundError as exc:
            raise ContentKeyNotFoundError(key) from exc

    def list(self, area: str) -> List[ContentEntry]:
        base = self._resolve(area)
        if not base.is_dir():
            return []
        entries = [
            ContentEntry(key=p.relative_to(self.root).as_posix(), size=p.stat().st_size)
            for p in base.rglob("*")
            if p.is_file()
        ]
        return sorted(entries, key=lambda e: e.key)

    def areas(self) -> List[str]:
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    @staticmethod
    def _discard(target: Path) -> None:
        try:
            target.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove partial content object %s: %s", target, exc)


_default_store: Optional[LocalContentStore] = None


def get_content_store() -> ContentStore:
    """FastAPI dependency returning the process-wide content store."""
    global _default_store
    if _default_store is None:
        from ..core.config import settings
        _default_store = LocalContentStore(settings.storage_root)
    return _default_store
