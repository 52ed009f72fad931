"""
Blob storage for uploaded print payloads.

Blobs live in a local directory on the ingress host, keyed by an opaque
storage id. Workers never touch the directory: a claim resolves the storage
id to a short-lived signed URL served by the API, so workers can run on any
host that can reach it.
"""

import logging
import os
import re
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import quote, urlencode
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from jose import JWTError, jwt

from printbroker.config import get_settings

logger = logging.getLogger(__name__)

_STORAGE_ID_RE = re.compile(r"^[0-9a-f]{32}$")
_PARTIAL_RE = re.compile(r"^[0-9a-f]{32}\.part$")


class InvalidStorageToken(Exception):
    """A download token is malformed, expired or bound to another blob."""


class StorageUrlSigner:
    """
    Issues and checks expiring download URLs for blobs.

    Tokens are HS256 JWTs carrying the storage id, so a URL for one blob
    cannot be replayed against another.
    """

    def __init__(
        self,
        base_url: str | None = None,
        signing_key: str | None = None,
        algorithm: str | None = None,
        ttl_seconds: int | None = None,
    ):
        settings = get_settings()

        self.base_url = (base_url or settings.public_base_url).rstrip("/")
        self._signing_key = signing_key or settings.storage_signing_key
        self._algorithm = algorithm or settings.storage_signing_algorithm
        self._ttl = timedelta(seconds=ttl_seconds or settings.storage_url_ttl_seconds)

    def get_url(self, storage_id: str) -> str:
        """Resolve a storage id to a signed download URL."""
        query = urlencode({"token": self.create_token(storage_id)})
        return f"{self.base_url}/storage/{quote(storage_id)}?{query}"

    def create_token(
        self,
        storage_id: str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        Create a download token bound to one blob.

        Args:
            storage_id: The blob the token grants access to.
            expires_delta: Optional custom lifetime.

        Returns:
            The encoded token.
        """
        now = datetime.now(timezone.utc)
        claims = {
            "sid": storage_id,
            "exp": now + (expires_delta if expires_delta is not None else self._ttl),
            "iat": now,
        }
        return jwt.encode(claims, self._signing_key, algorithm=self._algorithm)

    def verify_token(self, storage_id: str, token: str) -> None:
        """
        Check that a download token is valid for the given blob.

        Raises:
            InvalidStorageToken: If the token is invalid, expired or for another blob.
        """
        try:
            claims = jwt.decode(token, self._signing_key, algorithms=[self._algorithm])
        except JWTError as e:
            raise InvalidStorageToken(str(e)) from e

        if claims.get("sid") != storage_id:
            raise InvalidStorageToken("Token does not match storage id")


class BlobStore:
    """
    Filesystem blob store.

    Storage ids are random hex strings; anything else is rejected before
    touching the filesystem.
    """

    def __init__(self, root: str | os.PathLike | None = None):
        self.root = Path(root or get_settings().storage_path)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, storage_id: str) -> Path:
        """
        Get the filesystem path of a blob.

        Raises:
            ValueError: If the storage id is malformed.
        """
        if not _STORAGE_ID_RE.match(storage_id):
            raise ValueError(f"Invalid storage id: {storage_id!r}")
        return self.root / storage_id

    def exists(self, storage_id: str) -> bool:
        try:
            return self.path_for(storage_id).is_file()
        except ValueError:
            return False

    async def store(self, chunks: AsyncIterator[bytes]) -> str:
        """
        Write a stream of chunks to a new blob.

        The blob only becomes visible once fully written. File I/O runs in the threadpool.

        Args:
            chunks: The payload bytes, in order.

        Returns:
            The new storage id.
        """
        storage_id = uuid4().hex
        path = self.path_for(storage_id)
        partial = path.with_name(f"{storage_id}.part")

        size = 0
        try:
            f = await run_in_threadpool(open, partial, "wb")
            try:
                async for chunk in chunks:
                    await run_in_threadpool(f.write, chunk)
                    size += len(chunk)
            finally:
                await run_in_threadpool(f.close)
            await run_in_threadpool(partial.replace, path)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        logger.info(
            "Stored blob",
            extra={"storage_id": storage_id, "size": size}
        )
        return storage_id

    def delete(self, storage_id: str) -> bool:
        """
        Delete a blob.

        Returns:
            True if a blob was removed, False if it did not exist.
        """
        try:
            self.path_for(storage_id).unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted blob", extra={"storage_id": storage_id})
        return True

    def list_blobs_older_than(self, cutoff: datetime, limit: int) -> list[str]:
        """
        List storage ids whose files were last modified before the cutoff.

        Args:
            cutoff: Timezone-aware instant.
            limit: Maximum number of ids to return.
        """
        threshold = cutoff.timestamp()
        found = []
        with os.scandir(self.root) as entries:
            for entry in entries:
                if len(found) >= limit:
                    break
                if not entry.is_file() or not _STORAGE_ID_RE.match(entry.name):
                    continue
                if entry.stat().st_mtime < threshold:
                    found.append(entry.name)
        return found

    def delete_stale_partials(self, cutoff: datetime, limit: int) -> int:
        """
        Delete partial uploads last written before the cutoff.

        A partial is left behind when the ingress process dies mid-upload.

        Returns:
            Number of partial files deleted.
        """
        threshold = cutoff.timestamp()
        deleted = 0
        with os.scandir(self.root) as entries:
            for entry in entries:
                if deleted >= limit:
                    break
                if not entry.is_file() or not _PARTIAL_RE.match(entry.name):
                    continue
                if entry.stat().st_mtime < threshold:
                    Path(entry.path).unlink(missing_ok=True)
                    deleted += 1
        if deleted:
            logger.info("Deleted stale partial uploads", extra={"count": deleted})
        return deleted


_blob_store: BlobStore | None = None
_url_signer: StorageUrlSigner | None = None


def get_blob_store() -> BlobStore:
    """Get or create the process-wide blob store."""
    global _blob_store
    if _blob_store is None:
        _blob_store = BlobStore()
    return _blob_store


def get_url_signer() -> StorageUrlSigner:
    """Get or create the process-wide URL signer."""
    global _url_signer
    if _url_signer is None:
        _url_signer = StorageUrlSigner()
    return _url_signer


def reset_storage() -> None:
    """Forget the process-wide storage objects (settings changed)."""
    global _blob_store, _url_signer
    _blob_store = None
    _url_signer = None
