from __future__ import annotations

import asyncio
import os
import stat
import tempfile
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from storedemo.config.object_store_config import LocalStoreConfig
from storedemo.errors import FetchError, GetError, InvalidPath, ListError, NotFound, StoreError
from storedemo.logging_config import get_logger
from storedemo.storage.base import ObjectMeta, ObjectStore, ObjectStream, read_in_thread
from storedemo.storage.location import Location

logger = get_logger(__name__)


def _meta_from_stat(location: Location, st: os.stat_result) -> ObjectMeta:
    return ObjectMeta(
        location=location,
        size=int(st.st_size),
        last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
    )


class LocalFileSystemStore(ObjectStore):
    """
    Local disk backend.

    Locations are resolved relative to ``config.root``; with the default root
    of ``/`` a ``file:/tmp/data`` URL lists ``/tmp/data`` and reports keys
    such as ``tmp/data/a.bin``.
    """

    backend = "file"

    def __init__(self, config: LocalStoreConfig | None = None) -> None:
        self.config = config or LocalStoreConfig()
        self.root = Path(self.config.root)

    def __repr__(self) -> str:
        return f"LocalFileSystemStore(root={str(self.root)!r})"

    def _path(self, location: Location) -> Path:
        return self.root.joinpath(*location.parts)

    def _scan_dir(
        self, directory: Path, prefix: Location
    ) -> tuple[list[ObjectMeta], list[tuple[Path, Location, tuple[int, int]]]]:
        files: list[ObjectMeta] = []
        subdirs: list[tuple[Path, Location, tuple[int, int]]] = []
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            try:
                child = prefix.child(entry.name)
            except InvalidPath:
                logger.warning("Skipping entry with unsupported name: path=%s", entry.path)
                continue
            if entry.is_dir(follow_symlinks=True):
                st = entry.stat(follow_symlinks=True)
                subdirs.append((Path(entry.path), child, (st.st_dev, st.st_ino)))
            elif entry.is_file(follow_symlinks=True):
                files.append(_meta_from_stat(child, entry.stat(follow_symlinks=True)))
        return files, subdirs

    async def list(self, prefix: Optional[Location] = None) -> AsyncIterator[ObjectMeta]:
        prefix = prefix or Location()
        base = self._path(prefix)
        try:
            base_st = await asyncio.to_thread(base.stat)
        except OSError:
            return
        if not stat.S_ISDIR(base_st.st_mode):
            return
        # (st_dev, st_ino) of every directory already queued; symlinked directories are walked once
        seen = {(base_st.st_dev, base_st.st_ino)}
        pending = [(base, prefix)]
        while pending:
            directory, dir_location = pending.pop()
            try:
                files, subdirs = await asyncio.to_thread(self._scan_dir, directory, dir_location)
            except FileNotFoundError:
                # removed between discovery and scan
                continue
            except OSError as exc:
                logger.exception("Failed to scan directory: path=%s", directory)
                raise ListError(f"Error listing files in '{directory}': {exc}", {"path": str(directory)}) from exc
            for meta in files:
                yield meta
            for path, location, identity in reversed(subdirs):
                if identity in seen:
                    logger.warning("Skipping already visited directory: path=%s", path)
                    continue
                seen.add(identity)
                pending.append((path, location))

    async def head(self, location: Location) -> ObjectMeta:
        path = self._path(location)
        try:
            st = await asyncio.to_thread(path.stat)
        except FileNotFoundError as exc:
            raise NotFound(f"Object not found: {location}", {"location": str(location)}) from exc
        except OSError as exc:
            raise GetError(f"Error reading metadata for '{location}': {exc}", {"location": str(location)}) from exc
        if not stat.S_ISREG(st.st_mode):
            raise NotFound(f"Object not found: {location} is not a file", {"location": str(location)})
        return _meta_from_stat(location, st)

    async def get(self, location: Location) -> ObjectStream:
        path = self._path(location)
        try:
            handle = await asyncio.to_thread(open, path, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise NotFound(f"Object not found: {location}", {"location": str(location)}) from exc
        except OSError as exc:
            raise GetError(f"Error opening '{location}': {exc}", {"location": str(location)}) from exc

        try:
            meta = _meta_from_stat(location, os.fstat(handle.fileno()))
        except OSError as exc:
            handle.close()
            raise GetError(f"Error opening '{location}': {exc}", {"location": str(location)}) from exc

        def translate(exc: Exception) -> Exception:
            return FetchError(f"Error reading '{location}': {exc}", {"location": str(location)})

        chunks = read_in_thread(handle.read, handle.close, self.config.chunk_size, translate)
        return ObjectStream(meta, chunks, close=handle.close)

    def _write(self, path: Path, data: bytes) -> os.stat_result:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
        return path.stat()

    async def put(self, location: Location, data: bytes) -> ObjectMeta:
        if location.is_root:
            raise InvalidPath("Cannot write to the store root", {"location": ""})
        path = self._path(location)
        try:
            st = await asyncio.to_thread(self._write, path, data)
        except OSError as exc:
            raise StoreError(f"Error writing '{location}': {exc}", {"location": str(location)}) from exc
        logger.debug("Wrote object: location=%s size=%s", location, st.st_size)
        return _meta_from_stat(location, st)
