"""
utils/content_store.py
────────────────────────────────────────────
Key/bytes storage for generated QR images.

- LocalContentStore    – files in a directory (default static/generated_qr)
- SupabaseContentStore – objects in a Supabase storage bucket

get() returns None when the key is absent; put() returns a reference
(path or object key) for the stored bytes.
────────────────────────────────────────────
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Union

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    """Raised when bytes cannot be written to or removed from the store."""


class ContentStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...

    def get(self, key: str) -> Optional[bytes]: ...

    def delete(self, key: str) -> None: ...

    def probe(self) -> bool: ...


# =============================================================================
# 💾 Local disk
# =============================================================================
class LocalContentStore:
    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.directory / key).resolve()
        if self.directory.resolve() not in path.parents:
            raise ContentStoreError(f"Invalid content key: {key!r}")
        return path

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise ContentStoreError(f"Could not write {path}: {exc}") from exc
        return str(path)

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except OSError as exc:
            raise ContentStoreError(f"Could not delete {path}: {exc}") from exc

    def probe(self) -> bool:
        return self.directory.is_dir()


# =============================================================================
# ☁️ Supabase storage
# =============================================================================
class SupabaseContentStore:
    def __init__(self, client, bucket: str) -> None:
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            self._bucket().upload(key, data, {"content-type": content_type, "upsert": "true"})
        except Exception as exc:
            raise ContentStoreError(f"Upload of {key} to bucket {self.bucket} failed: {exc}") from exc
        return f"{self.bucket}/{key}"

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._bucket().download(key)
        except Exception as exc:
            # storage reports missing objects as errors; treat as absent
            logger.warning(f"⚠️ Could not download {key} from bucket {self.bucket}: {exc}")
            return None

    def delete(self, key: str) -> None:
        try:
            self._bucket().remove([key])
        except Exception as exc:
            raise ContentStoreError(f"Removal of {key} from bucket {self.bucket} failed: {exc}") from exc

    def probe(self) -> bool:
        try:
            self.client.storage.get_bucket(self.bucket)
        except Exception as exc:
            logger.warning(f"⚠️ Storage bucket {self.bucket} not reachable: {exc}")
            return False
        return True
