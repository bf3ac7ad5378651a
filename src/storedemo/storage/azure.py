from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient

from storedemo.config.object_store_config import AzureStoreConfig
from storedemo.errors import FetchError, GetError, InvalidPath, ListError, NotFound, StoreError
from storedemo.logging_config import get_logger
from storedemo.storage.base import ObjectMeta, ObjectStore, ObjectStream, iterate_in_thread
from storedemo.storage.location import Location

logger = get_logger(__name__)


class AzureBlobStore(ObjectStore):
    """
    Azure Blob Storage backend, one container per store.

    Authenticates with a shared account key. Downloads are issued in ranges of
    ``config.chunk_size`` bytes so a large blob is never held in memory.
    """

    backend = "azure"

    def __init__(self, config: AzureStoreConfig, container_client=None):
        self.config = config
        if container_client is None:
            service = BlobServiceClient(
                account_url=config.account_url,
                credential={"account_name": config.account_name, "account_key": config.access_key},
                max_single_get_size=config.chunk_size,
                max_chunk_get_size=config.chunk_size,
            )
            container_client = service.get_container_client(config.container_name)
        self.container = container_client

    def __repr__(self) -> str:
        return f"AzureBlobStore(account={self.config.account_name!r}, container={self.config.container_name!r})"

    def _not_found(self, name: str) -> NotFound:
        return NotFound(
            f"Blob not found in container {self.config.container_name!r}: {name!r}",
            {"location": name},
        )

    async def list(self, prefix: Optional[Location] = None) -> AsyncIterator[ObjectMeta]:
        starts_with = f"{prefix}/" if prefix is not None and not prefix.is_root else None

        def translate(exc: Exception) -> Exception:
            logger.error("Failed to list blobs: prefix=%s container=%s", starts_with, self.config.container_name, exc_info=exc)
            return ListError(
                f"Error listing blobs in container {self.config.container_name!r}: {exc}",
                {"container": self.config.container_name, "prefix": starts_with or ""},
            )

        try:
            blobs = iter(self.container.list_blobs(name_starts_with=starts_with))
        except AzureError as exc:
            raise translate(exc) from exc

        async for blob in iterate_in_thread(blobs, translate):
            try:
                location = Location.from_key(blob.name)
            except InvalidPath:
                logger.warning("Skipping blob with unsupported name: container=%s name=%r", self.config.container_name, blob.name)
                continue
            yield ObjectMeta(location=location, size=int(blob.size or 0), last_modified=blob.last_modified, e_tag=blob.etag)

    async def head(self, location: Location) -> ObjectMeta:
        name = str(location)
        blob = self.container.get_blob_client(name)
        try:
            props = await asyncio.to_thread(blob.get_blob_properties)
        except ResourceNotFoundError as exc:
            raise self._not_found(name) from exc
        except AzureError as exc:
            raise GetError(f"Error reading blob properties for {name!r}: {exc}", {"location": name}) from exc
        return ObjectMeta(location=location, size=int(props.size or 0), last_modified=props.last_modified, e_tag=props.etag)

    async def get(self, location: Location) -> ObjectStream:
        name = str(location)
        try:
            downloader = await asyncio.to_thread(self.container.download_blob, name)
        except ResourceNotFoundError as exc:
            raise self._not_found(name) from exc
        except AzureError as exc:
            raise GetError(f"Error opening blob {name!r}: {exc}", {"location": name}) from exc

        props = downloader.properties
        meta = ObjectMeta(location=location, size=int(props.size or 0), last_modified=props.last_modified, e_tag=props.etag)

        def translate(exc: Exception) -> Exception:
            return FetchError(f"Error streaming blob {name!r}: {exc}", {"location": name})

        return ObjectStream(meta, iterate_in_thread(iter(downloader.chunks()), translate))

    async def put(self, location: Location, data: bytes) -> ObjectMeta:
        name = str(location)
        if not name:
            raise InvalidPath("Cannot write to the container root", {"location": ""})
        try:
            await asyncio.to_thread(self.container.upload_blob, name, data, overwrite=True)
        except AzureError as exc:
            raise StoreError(f"Error uploading blob {name!r}: {exc}", {"location": name}) from exc
        return ObjectMeta(location=location, size=len(data))
