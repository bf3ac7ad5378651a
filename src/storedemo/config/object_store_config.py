from __future__ import annotations

from dataclasses import dataclass

from storedemo.errors import ConfigError, MissingCredentials

DEFAULT_S3_REGION = "eu-central-1"
DEFAULT_CHUNK_SIZE = 64 * 1024


def _blank(value: str | None) -> bool:
    return not (value and value.strip())


def _check_chunk_size(owner: str, chunk_size: int) -> None:
    if chunk_size <= 0:
        raise ConfigError(f"{owner}.chunk_size must be > 0, got: {chunk_size}")


@dataclass(frozen=True)
class LocalStoreConfig:
    root: str = "/"
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):
        if _blank(self.root):
            raise ConfigError("LocalStoreConfig.root must be a non-empty path.")
        _check_chunk_size("LocalStoreConfig", self.chunk_size)


@dataclass(frozen=True)
class S3StoreConfig:
    bucket_name: str
    access_key_id: str
    secret_access_key: str
    region: str = DEFAULT_S3_REGION
    endpoint: str | None = None
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):
        if _blank(self.bucket_name):
            raise ConfigError("S3StoreConfig.bucket_name must be a non-empty string.")
        if _blank(self.access_key_id):
            raise MissingCredentials("access_key_id", "S3StoreConfig requires access_key_id.")
        if _blank(self.secret_access_key):
            raise MissingCredentials("secret_access_key", "S3StoreConfig requires secret_access_key.")
        if _blank(self.region):
            raise ConfigError("S3StoreConfig.region must be a non-empty string.")
        _check_chunk_size("S3StoreConfig", self.chunk_size)


@dataclass(frozen=True)
class AzureStoreConfig:
    container_name: str
    account_name: str
    access_key: str
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self):
        if _blank(self.container_name):
            raise ConfigError("AzureStoreConfig.container_name must be a non-empty string.")
        if _blank(self.account_name):
            raise MissingCredentials("account_name", "AzureStoreConfig requires account_name.")
        if _blank(self.access_key):
            raise MissingCredentials("access_key", "AzureStoreConfig requires access_key.")
        _check_chunk_size("AzureStoreConfig", self.chunk_size)

    @property
    def account_url(self) -> str:
        return f"https://{self.account_name}.blob.core.windows.net"
