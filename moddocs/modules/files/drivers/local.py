"""
Local filesystem storage driver.

Objects live under a root directory and are served from a public base URL.
"""

import asyncio
from functools import partial
from pathlib import Path
from typing import Union

from structlog import get_logger

from .base import BaseStorageDriver, StorageError, StorageObjectNotFound

logger = get_logger(__name__)


class LocalStorageDriver(BaseStorageDriver):
    """Stores objects as files below ``root``."""

    name = "local"

    def __init__(self, root: Union[str, Path], base_url: str):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"Key escapes the storage root: {key}")
        return path

    @staticmethod
    async def _run(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        try:
            await self._run(self._write, path, data)
        except OSError as e:
            logger.error("Local write failed", key=key, error=str(e))
            raise StorageError(f"Failed to write {key}: {e}") from e

        logger.debug("Stored object locally", key=key, size=len(data), content_type=content_type)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await self._run(path.read_bytes)
        except FileNotFoundError as e:
            raise StorageObjectNotFound(key) from e
        except OSError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await self._run(partial(path.unlink, missing_ok=True))
        except OSError as e:
            logger.error("Local delete failed", key=key, error=str(e))
            raise StorageError(f"Failed to delete {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        return await self._run(self._path(key).is_file)

    def url(self, key: str) -> str:
        return f"{self.base_url}/{key}"
