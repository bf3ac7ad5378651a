from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from storedemo.config.object_store_config import S3StoreConfig
from storedemo.errors import FetchError, GetError, InvalidPath, ListError, NotFound, StoreError
from storedemo.logging_config import get_logger
from storedemo.storage.base import ObjectMeta, ObjectStore, ObjectStream, iterate_in_thread, read_in_thread
from storedemo.storage.location import Location
from storedemo.storage.models import S3ListPage

logger = get_logger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _list_prefix(prefix: Optional[Location]) -> str:
    # trailing delimiter keeps "a/b" from matching "a/bc"
    if prefix is None or prefix.is_root:
        return ""
    return f"{prefix}/"


class S3ObjectStore(ObjectStore):
    backend = "s3"

    def __init__(self, config: S3StoreConfig, client=None):
        self.config = config
        self.bucket_name = config.bucket_name
        if client is None:
            client_kwargs = {
                "config": Config(signature_version="s3v4"),
                "region_name": config.region,
                "aws_access_key_id": config.access_key_id,
                "aws_secret_access_key": config.secret_access_key,
            }
            if config.endpoint:
                client_kwargs["endpoint_url"] = config.endpoint
            client = boto3.client("s3", **client_kwargs)
        self.client = client

    def __repr__(self) -> str:
        return f"S3ObjectStore(bucket={self.bucket_name!r}, region={self.config.region!r})"

    def _meta(self, location: Location, response: dict) -> ObjectMeta:
        return ObjectMeta(
            location=location,
            size=int(response.get("ContentLength", 0)),
            last_modified=response.get("LastModified"),
            e_tag=response.get("ETag"),
        )

    def _list_error(self, prefix: str, exc: Exception) -> ListError:
        logger.error("Failed to list objects: prefix=%s bucket=%s", prefix, self.bucket_name, exc_info=exc)
        return ListError(
            f"Error listing objects in bucket {self.bucket_name!r} under {prefix!r}: {exc}",
            {"bucket": self.bucket_name, "prefix": prefix},
        )

    async def list(self, prefix: Optional[Location] = None) -> AsyncIterator[ObjectMeta]:
        s3_prefix = _list_prefix(prefix)
        paginator = self.client.get_paginator("list_objects_v2")
        pages = iter(paginator.paginate(Bucket=self.bucket_name, Prefix=s3_prefix))

        async for raw_page in iterate_in_thread(pages, lambda exc: self._list_error(s3_prefix, exc)):
            try:
                page = S3ListPage.model_validate(raw_page)
            except ValidationError as exc:
                raise self._list_error(s3_prefix, exc) from exc
            for entry in page.contents:
                try:
                    location = Location.from_key(entry.key)
                except InvalidPath:
                    logger.warning("Skipping object with unsupported key: bucket=%s key=%r", self.bucket_name, entry.key)
                    continue
                yield ObjectMeta(
                    location=location,
                    size=entry.size,
                    last_modified=entry.last_modified,
                    e_tag=entry.e_tag,
                )

    async def head(self, location: Location) -> ObjectMeta:
        key = str(location)
        try:
            response = await asyncio.to_thread(self.client.head_object, Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise NotFound(f"Object not found in bucket {self.bucket_name!r}: {key!r}", {"location": key}) from e
            raise GetError(f"Error reading metadata for {key!r}: {e}", {"location": key}) from e
        except BotoCoreError as e:
            raise GetError(f"Error reading metadata for {key!r}: {e}", {"location": key}) from e
        return self._meta(location, response)

    async def get(self, location: Location) -> ObjectStream:
        """
        Stream an object without downloading it first.
        The body is read in ``chunk_size`` pieces as the caller iterates.
        """
        key = str(location)
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket_name, Key=key)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise NotFound(f"Object not found in bucket {self.bucket_name!r}: {key!r}", {"location": key}) from e
            raise GetError(f"Error opening object {key!r}: {e}", {"location": key}) from e
        except BotoCoreError as e:
            raise GetError(f"Error opening object {key!r}: {e}", {"location": key}) from e

        body = response["Body"]

        def translate(exc: Exception) -> Exception:
            return FetchError(f"Error streaming object {key!r}: {exc}", {"location": key})

        chunks = read_in_thread(body.read, body.close, self.config.chunk_size, translate)
        return ObjectStream(self._meta(location, response), chunks, close=body.close)

    async def put(self, location: Location, data: bytes) -> ObjectMeta:
        key = str(location)
        if not key:
            raise InvalidPath("Cannot write to the bucket root", {"location": ""})
        try:
            response = await asyncio.to_thread(
                self.client.put_object, Bucket=self.bucket_name, Key=key, Body=data
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Error putting object {key!r} to bucket {self.bucket_name!r}: {e}", {"location": key}) from e
        return ObjectMeta(location=location, size=len(data), e_tag=response.get("ETag"))
