"""
Local blob storage for uploaded listing files.

Files are written as `<root>/<file_id><ext>` where `ext` comes from the
original upload name. The returned path is the location token persisted in
`listing_files.path`; `load`/`delete` take that token back.
"""

from __future__ import annotations

import inspect
import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

CHUNK_SIZE = 1024 * 1024  # 1 MiB

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    pass


class FileMissingError(StorageError):
    pass


async def _read_chunk(reader: Any, size: int) -> bytes:
    # UploadFile.read is a coroutine, io.BytesIO.read is not.
    chunk = reader.read(size)
    if inspect.isawaitable(chunk):
        chunk = await chunk
    return chunk or b""


class FileStorage:
    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)

    def path_for(self, file_id: str, name: str) -> str:
        return str(self._root / f"{file_id}{Path(name or '').suffix.lower()}")

    async def save(self, file_id: str, name: str, reader: Any) -> str:
        """
        Stream `reader` to disk and return the stored path.

        The partially written file is removed if anything goes wrong,
        including cancellation of the calling task.
        """
        path = self.path_for(file_id, name)
        try:
            await aiofiles.os.makedirs(self._root, exist_ok=True)
            async with aiofiles.open(path, "wb") as out:
                while True:
                    chunk = await _read_chunk(reader, CHUNK_SIZE)
                    if not chunk:
                        break
                    await out.write(chunk)
        except BaseException as exc:
            await self._discard(path)
            if isinstance(exc, OSError):
                raise StorageError(f"failed to save file {file_id}") from exc
            raise
        return path

    async def load(self, path: str) -> AsyncIterator[bytes]:
        """
        Open a stored file and return an async iterator over its chunks.

        Opening happens eagerly so a missing file is reported before any
        response bytes are sent.
        """
        try:
            src = await aiofiles.open(path, "rb")
        except FileNotFoundError as exc:
            raise FileMissingError(f"file not found: {path}") from exc
        except OSError as exc:
            raise StorageError(f"failed to open file: {path}") from exc
        return self._iter_chunks(src)

    async def _iter_chunks(self, src: Any) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await src.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            await src.close()

    async def delete(self, path: str) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError as exc:
            raise FileMissingError(f"file not found: {path}") from exc
        except OSError as exc:
            raise StorageError(f"failed to delete file: {path}") from exc

    async def _discard(self, path: str) -> None:
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("partial_file_cleanup_failed path=%s", path, exc_info=True)
