"""
Resolve a URL into a configured ObjectStore.

    file:/path            --> local filesystem (no host allowed)
    s3://bucket/path      --> S3 or an S3-compatible service
    azure://container/p   --> Azure Blob Storage, opt-in via STOREDEMO_ENABLE_AZURE
    gcs://bucket/path     --> recognized, not hooked up
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from urllib.parse import SplitResult, urlsplit

from storedemo.config.object_store_config import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_S3_REGION,
    AzureStoreConfig,
    LocalStoreConfig,
    S3StoreConfig,
)
from storedemo.config.run_config import env_flag
from storedemo.errors import ConfigError, InvalidPath, MissingCredentials, UnsupportedBackend, UnsupportedScheme
from storedemo.logging_config import get_logger
from storedemo.storage.azure import AzureBlobStore
from storedemo.storage.base import ObjectStore
from storedemo.storage.local import LocalFileSystemStore
from storedemo.storage.location import Location
from storedemo.storage.s3 import S3ObjectStore

logger = get_logger(__name__)

SUPPORTED_SCHEMES = ("file", "s3", "gcs", "azure")


def require_env(env: Mapping[str, str], var_name: str, backend: str) -> str:
    value = env.get(var_name)
    if value is None or not value.strip():
        raise MissingCredentials(var_name, f"Cannot create {backend} store: environment variable {var_name} is not set")
    return value


def parse_url(url: str) -> SplitResult:
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise ConfigError(f"Malformed URL '{url}': {exc}", {"url": url}) from exc
    if not parts.scheme:
        raise ConfigError(f"Malformed URL '{url}': missing scheme", {"url": url})
    return parts


def location_from_url(url: str | SplitResult) -> Location:
    parts = parse_url(url) if isinstance(url, str) else url
    try:
        return Location.from_url_path(parts.path)
    except InvalidPath as exc:
        raise InvalidPath(f"Unsupported path: '{parts.path}': {exc.message}", {"path": parts.path}) from exc


def get_local_store(env: Mapping[str, str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> ObjectStore:
    return LocalFileSystemStore(LocalStoreConfig(root=env.get("STOREDEMO_LOCAL_ROOT") or "/", chunk_size=chunk_size))


def get_s3_store_config(bucket_name: str, env: Mapping[str, str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> S3StoreConfig:
    return S3StoreConfig(
        bucket_name=bucket_name,
        access_key_id=require_env(env, "AWS_ACCESS_KEY_ID", "s3"),
        secret_access_key=require_env(env, "AWS_SECRET_ACCESS_KEY", "s3"),
        region=env.get("AWS_REGION") or DEFAULT_S3_REGION,
        endpoint=env.get("AWS_ENDPOINT") or None,
        chunk_size=chunk_size,
    )


def get_s3_store(bucket_name: str, env: Mapping[str, str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> ObjectStore:
    return S3ObjectStore(get_s3_store_config(bucket_name, env, chunk_size))


def get_azure_store_config(container_name: str, env: Mapping[str, str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> AzureStoreConfig:
    return AzureStoreConfig(
        container_name=container_name,
        account_name=require_env(env, "AZURE_STORAGE_ACCOUNT_NAME", "azure"),
        access_key=require_env(env, "AZURE_STORAGE_ACCOUNT_KEY", "azure"),
        chunk_size=chunk_size,
    )


def get_azure_store(container_name: str, env: Mapping[str, str], chunk_size: int = DEFAULT_CHUNK_SIZE) -> ObjectStore:
    return AzureBlobStore(get_azure_store_config(container_name, env, chunk_size))


def get_object_store(
    url: str | SplitResult,
    env: Mapping[str, str] | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ObjectStore:
    env = os.environ if env is None else env
    parts = parse_url(url) if isinstance(url, str) else url
    scheme = parts.scheme.lower()
    raw = parts.geturl()

    if scheme == "file":
        if parts.netloc:
            raise InvalidPath(f"Unsupported file url. Expected no host: {raw}", {"url": raw})
        store = get_local_store(env, chunk_size)
    elif scheme == "s3":
        if not parts.hostname:
            raise ConfigError(f"Unsupported s3 url. Expected bucket name: {raw}", {"url": raw})
        store = get_s3_store(parts.hostname, env, chunk_size)
    elif scheme == "azure":
        if not env_flag(env, "STOREDEMO_ENABLE_AZURE"):
            raise UnsupportedBackend(
                "Azure support is not hooked up in this build. Set STOREDEMO_ENABLE_AZURE=1 to opt in.",
                {"scheme": scheme},
            )
        if not parts.hostname:
            raise ConfigError(f"Unsupported azure url. Expected container name: {raw}", {"url": raw})
        store = get_azure_store(parts.hostname, env, chunk_size)
    elif scheme == "gcs":
        raise UnsupportedBackend("GCS support not yet hooked up due to lack of testing.", {"scheme": scheme})
    else:
        raise UnsupportedScheme(
            f"Unsupported url scheme {scheme!r}. Supported schemes: {', '.join(SUPPORTED_SCHEMES)} "
            "(try file:/foo, s3://bucket)",
            {"scheme": scheme},
        )

    logger.info("Resolved object store: scheme=%s store=%r", scheme, store)
    return store
