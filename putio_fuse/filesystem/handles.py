"""
Open file handles.

- ReadHandle: streams a ranged download, reopening it only when the kernel
  seeks somewhere the open stream is not positioned.
- WriteHandle: stages writes in a local temporary file and uploads the whole
  file on flush, since put.io has no partial update.
- BufferHandle: serves a fixed in-memory buffer (diagnostic pseudo-files).
"""

import errno
import logging
import tempfile
from typing import Optional

import pyfuse3
import trio

from ..api_client import DownloadStream, PutioError

log = logging.getLogger(__name__)


class Handle:
    """Base handle. A handle serves exactly one role; the rest is EBADF."""

    direct_io = False

    async def read(self, offset: int, size: int) -> bytes:
        raise pyfuse3.FUSEError(errno.EBADF)

    async def write(self, offset: int, data: bytes) -> int:
        raise pyfuse3.FUSEError(errno.EBADF)

    async def flush(self) -> None:
        pass

    async def release(self) -> None:
        pass


class ReadHandle(Handle):
    """Sequential, seek-aware streaming reader for one FileNode."""

    def __init__(self, node):
        self.node = node
        self.offset = 0
        self.stream: Optional[DownloadStream] = None
        # Serializes reads: the kernel may issue several at once on one fh
        self._lock = trio.Lock()

    def __repr__(self) -> str:
        return f"<ReadHandle {self.node!r} offset={self.offset} streaming={self.stream is not None}>"

    async def read(self, offset: int, size: int) -> bytes:
        async with self._lock:
            return await self._read(offset, size)

    async def _read(self, offset: int, size: int) -> bytes:
        entry = self.node.entry
        log.debug(f"read: {entry.name!r} {size} bytes at {offset}")

        if offset >= entry.size:
            return b""

        if self.stream is None or self.offset != offset:
            await self._close_stream()
            try:
                self.stream = await self.node.fs.api.download_range(entry.id, offset)
            except PutioError as e:
                if e.status_code == 416:
                    # Remote object is shorter than our snapshot
                    return b""
                log.error(f"could not download {entry.id} ({entry.name!r}) at {offset}: {e}")
                raise pyfuse3.FUSEError(errno.EIO)
            self.offset = offset

        try:
            data = await self.stream.read(size)
        except PutioError as e:
            log.error(f"could not read {entry.name!r} at {offset}: {e}")
            await self._close_stream()
            raise pyfuse3.FUSEError(errno.EIO)

        self.offset += len(data)
        return data

    async def _close_stream(self) -> None:
        if self.stream is not None:
            stream, self.stream = self.stream, None
            await stream.aclose()

    async def release(self) -> None:
        await self._close_stream()
        self.offset = 0


class WriteHandle(Handle):
    """Local staging file that is uploaded as a whole on flush."""

    def __init__(self, node):
        self.node = node
        self.dirty = False
        # Set once the remote original is gone but its replacement is not up yet
        self._remote_deleted = False
        self._lock = trio.Lock()
        try:
            self.staging = tempfile.TemporaryFile(prefix="putiofs-")
        except OSError as e:
            log.error(f"could not create staging file for {node!r}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

    def __repr__(self) -> str:
        return f"<WriteHandle {self.node!r} dirty={self.dirty}>"

    async def write(self, offset: int, data: bytes) -> int:
        async with self._lock:
            return self._write(offset, data)

    def _write(self, offset: int, data: bytes) -> int:
        log.debug(f"write: {self.node.entry.name!r} {len(data)} bytes at {offset}")
        try:
            self.staging.seek(offset)
            written = self.staging.write(data)
        except OSError as e:
            log.error(f"could not stage write for {self.node.entry.name!r}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)
        self.dirty = True
        return written

    async def flush(self) -> None:
        # Held across the upload, which reads the staging file from offset 0
        async with self._lock:
            await self._flush()

    async def _flush(self) -> None:
        if not self.dirty:
            return

        entry = self.node.entry
        api = self.node.fs.api
        log.debug(f"flush: uploading {entry.name!r} (id={entry.id})")
        self.staging.seek(0)

        # Upload always creates a new file, so the old one has to go first
        if not self._remote_deleted:
            try:
                await api.delete(entry.id)
            except PutioError as e:
                log.error(f"could not delete {entry.id} ({entry.name!r}) before upload: {e}")
                raise pyfuse3.FUSEError(errno.EIO)
            self._remote_deleted = True

        try:
            uploaded = await api.upload(self.staging, entry.name, entry.parent_id)
        except PutioError as e:
            log.error(f"could not upload {entry.name!r}: {e}")
            raise pyfuse3.FUSEError(errno.EIO)

        self.node.replace_entry(uploaded)
        self._remote_deleted = False
        self.dirty = False

    async def release(self) -> None:
        if self.dirty:
            log.debug(f"release: discarding unflushed writes to {self.node.entry.name!r}")
        self.staging.close()


class BufferHandle(Handle):
    """Read-only view of a fixed byte buffer."""

    direct_io = True

    def __init__(self, content: bytes):
        self.content = content

    async def read(self, offset: int, size: int) -> bytes:
        return self.content[offset:offset + size]
