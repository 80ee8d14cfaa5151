from __future__ import annotations

from typing import Optional

import httpx

from treestore.content.blobs import make_ref
from treestore.errors import NotFound, StorageUnavailable


class HttpBlobStore:
    """
    Blob store behind a plain HTTP object endpoint: PUT {base}/{ref}, GET {base}/{ref}.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=httpx.Timeout(timeout), transport=transport)

    def _url(self, ref: str) -> str:
        return f"{self.base_url}/{ref.lstrip('/')}"

    def put(self, data: bytes, *, name: str) -> str:
        ref = make_ref(name)
        try:
            r = self._client.put(
                self._url(ref),
                content=data,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.HTTPError as e:
            raise StorageUnavailable(f"Blob store unreachable: {e}") from e
        if r.status_code >= 400:
            raise StorageUnavailable(f"Blob store error {r.status_code}: {r.text}")
        return ref

    def get(self, ref: str) -> bytes:
        try:
            r = self._client.get(self._url(ref))
        except httpx.HTTPError as e:
            raise StorageUnavailable(f"Blob store unreachable: {e}") from e
        if r.status_code == 404:
            raise NotFound(f"Content not found: {ref}")
        if r.status_code >= 400:
            raise StorageUnavailable(f"Blob store error {r.status_code}: {r.text}")
        return r.content

    def delete(self, ref: str) -> None:
        try:
            r = self._client.delete(self._url(ref))
        except httpx.HTTPError as e:
            raise StorageUnavailable(f"Blob store unreachable: {e}") from e
        if r.status_code >= 400 and r.status_code != 404:
            raise StorageUnavailable(f"Blob store error {r.status_code}: {r.text}")

    def close(self) -> None:
        self._client.close()
