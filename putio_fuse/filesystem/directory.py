"""
DirectoryMixin — Directory listing and namespace operations.

Handles lookup, opendir/readdir/releasedir, mkdir, create, unlink, rmdir,
rename and symlink. The put.io logic lives on DirectoryNode; this mixin
translates kernel arguments and keeps the inode table in step.
"""

import errno
import logging

import pyfuse3

from .nodes import DirectoryNode, DirEntry

log = logging.getLogger(__name__)


class DirectoryMixin:
    """Directory listing and namespace operations."""

    def _directory(self, inode: int) -> DirectoryNode:
        node = self._node(inode)
        if not isinstance(node, DirectoryNode):
            raise pyfuse3.FUSEError(errno.ENOTDIR)
        return node

    async def lookup(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Look up a directory entry by name."""
        node = await self._node(parent_inode).lookup(name.decode("utf-8"))
        self._count_lookup(node.inode)
        return node.attr()

    async def opendir(self, inode: int, ctx: pyfuse3.RequestContext) -> int:
        """Snapshot the listing; readdir pages through it by offset."""
        node = self._directory(inode)
        listing = await node.read_dir_all()

        fh = self._next_fh
        self._next_fh += 1
        self._dir_listings[fh] = listing
        return fh

    async def readdir(self, fh: int, start_id: int, token: pyfuse3.ReaddirToken) -> None:
        """Read directory contents."""
        listing: list[DirEntry] = self._dir_listings.get(fh)
        if listing is None:
            raise pyfuse3.FUSEError(errno.EBADF)

        for idx, dirent in enumerate(listing):
            if idx < start_id:
                continue
            node = self._node_for_entry(dirent.entry)
            if not pyfuse3.readdir_reply(token, dirent.name.encode("utf-8"), node.attr(), idx + 1):
                break
            self._count_lookup(node.inode)

    async def releasedir(self, fh: int) -> None:
        self._dir_listings.pop(fh, None)

    async def mkdir(self, parent_inode: int, name: bytes, mode: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        node = await self._node(parent_inode).mkdir(name.decode("utf-8"))
        self._count_lookup(node.inode)
        return node.attr()

    async def create(self, parent_inode: int, name: bytes, mode: int, flags: int, ctx: pyfuse3.RequestContext) -> tuple[pyfuse3.FileInfo, pyfuse3.EntryAttributes]:
        """Create an empty file and return it open for writing."""
        node, handle = await self._node(parent_inode).create(name.decode("utf-8"))
        self._count_lookup(node.inode)
        fh = self._register_handle(handle)
        return pyfuse3.FileInfo(fh=fh), node.attr()

    async def unlink(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> None:
        await self._node(parent_inode).remove(name.decode("utf-8"))

    async def rmdir(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> None:
        # No ENOTEMPTY check: a non-empty folder is removed with its contents
        await self._node(parent_inode).remove(name.decode("utf-8"))

    async def rename(self, parent_inode_old: int, name_old: bytes, parent_inode_new: int, name_new: bytes, flags: int, ctx: pyfuse3.RequestContext) -> None:
        if flags:
            log.debug(f"rename: ignoring flags {flags:#x}")
        new_dir = self._directory(parent_inode_new)
        await self._node(parent_inode_old).rename(
            name_old.decode("utf-8"), new_dir, name_new.decode("utf-8"),
        )

    async def symlink(self, parent_inode: int, name: bytes, target: bytes, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        node = await self._node(parent_inode).symlink(name.decode("utf-8"), target.decode("utf-8"))
        return node.attr()
