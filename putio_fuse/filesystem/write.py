"""
WriteMixin — Write, flush and release of open handles.

Writes land in the handle's staging file; flush uploads it to put.io.
"""

import logging

import pyfuse3

log = logging.getLogger(__name__)


class WriteMixin:
    """Write, flush and release of open handles."""

    async def write(self, fh: int, off: int, buf: bytes) -> int:
        return await self._handle(fh).write(off, buf)

    async def flush(self, fh: int) -> None:
        await self._handle(fh).flush()

    async def fsync(self, fh: int, datasync: bool) -> None:
        handle = self._handle(fh)
        node = getattr(handle, "node", None)
        if node is None:
            return
        await node.fsync()

    async def release(self, fh: int) -> None:
        """Close a handle. Staged writes that were never flushed are lost."""
        handle = self._handles.pop(fh, None)
        if handle is None:
            log.debug(f"release: unknown handle {fh}")
            return
        await handle.release()

        # A node forgotten while this handle was open can go now
        node = getattr(handle, "node", None)
        if node is None or self._nodes.get(node.inode) is not node:
            return
        if self._lookup_counts.get(node.inode) != 0:
            return
        if any(getattr(h, "node", None) is node for h in self._handles.values()):
            return
        log.debug(f"release: dropping forgotten inode {node.inode}")
        self._drop_node(node.inode)
