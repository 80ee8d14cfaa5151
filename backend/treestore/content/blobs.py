from __future__ import annotations

import os
import re
import time
from pathlib import Path
from typing import Optional, Protocol

from treestore.config import blob_dir, blob_timeout, blob_url
from treestore.errors import NotFound, StorageUnavailable, ValidationError


_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class BlobStore(Protocol):
    """
    Opaque content store: bytes in, reference out. The tree never inspects refs.
    """

    def put(self, data: bytes, *, name: str) -> str: ...

    def get(self, ref: str) -> bytes: ...

    def delete(self, ref: str) -> None: ...


def make_ref(name: str) -> str:
    # files/<epoch ms>_<name>, the layout uploads have always used.
    safe = _UNSAFE_CHARS_RE.sub("_", name).strip("._") or "blob"
    return f"files/{int(time.time() * 1000)}_{safe}"


class LocalBlobStore:
    def __init__(self, root: Path):
        self.root = Path(root).expanduser().resolve()

    def _safe_join(self, ref: str) -> Path:
        candidate = (self.root / ref).resolve()
        try:
            common = os.path.commonpath([str(self.root), str(candidate)])
        except ValueError as e:
            raise ValidationError(f"Invalid content reference: {e}") from e
        if Path(common) != self.root or candidate == self.root:
            raise ValidationError("Content reference escapes the blob root")
        return candidate

    def put(self, data: bytes, *, name: str) -> str:
        ref = make_ref(name)
        p = self._safe_join(ref)
        # Two uploads of the same name in the same millisecond get distinct refs.
        n = 1
        while p.exists():
            ref = f"{make_ref(name)}.{n}"
            p = self._safe_join(ref)
            n += 1
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as e:
            raise StorageUnavailable(f"Cannot store content: {e}") from e
        return ref

    def get(self, ref: str) -> bytes:
        p = self._safe_join(ref)
        if not p.is_file():
            raise NotFound(f"Content not found: {ref}")
        try:
            return p.read_bytes()
        except OSError as e:
            raise StorageUnavailable(f"Cannot read content: {e}") from e

    def delete(self, ref: str) -> None:
        p = self._safe_join(ref)
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot remove content: {e}") from e


def make_blob_store(*, url: Optional[str] = None, root: Optional[Path] = None) -> BlobStore:
    """
    HTTP store when a base URL is configured, otherwise a local directory.
    """
    url = url or blob_url()
    if url:
        from treestore.content.http_store import HttpBlobStore  # noqa: WPS433

        return HttpBlobStore(url, timeout=blob_timeout())
    return LocalBlobStore(root or blob_dir())
