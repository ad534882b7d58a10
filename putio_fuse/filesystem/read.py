"""
ReadMixin — File open and read operations.

Handles open and read, and the handle table both share with WriteMixin.
"""

import errno
import logging

import pyfuse3

from .handles import Handle

log = logging.getLogger(__name__)


class ReadMixin:
    """File open and read operations."""

    def _register_handle(self, handle: Handle) -> int:
        fh = self._next_fh
        self._next_fh += 1
        self._handles[fh] = handle
        return fh

    def _handle(self, fh: int) -> Handle:
        handle = self._handles.get(fh)
        if handle is None:
            raise pyfuse3.FUSEError(errno.EBADF)
        return handle

    async def open(self, inode: int, flags: int, ctx: pyfuse3.RequestContext) -> pyfuse3.FileInfo:
        """Open a file. The node picks the handle role from the access mode."""
        handle = await self._node(inode).open(flags)

        fi = pyfuse3.FileInfo(fh=self._register_handle(handle))
        # Diagnostic buffers must bypass the page cache or stale content
        # from an earlier lookup could be served
        fi.direct_io = handle.direct_io
        return fi

    async def read(self, fh: int, off: int, size: int) -> bytes:
        return await self._handle(fh).read(off, size)
