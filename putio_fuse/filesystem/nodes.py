"""
Filesystem nodes.

A node is what an inode stands for: a remote directory, a remote file, or a
diagnostic pseudo-file synthesized at lookup time. Every node supports
`attr()`; any other capability a variant does not have answers ENOTSUP.

Remote-backed nodes hold an immutable `Entry` snapshot. Their identity is
`(id, is_dir)`; name, size and parent are only as fresh as the call that
fetched them.
"""

import errno
import io
import logging
import os
import stat
from dataclasses import dataclass, replace

import pyfuse3

from ..api_client import PutioError
from ..formatters import format_account, format_entry, format_transfers
from ..junk import is_junk
from ..models import Entry
from .handles import BufferHandle, Handle, ReadHandle, WriteHandle

log = logging.getLogger(__name__)

ACCOUNT_FILE = ".account"
TRANSFERS_FILE = ".transfers"
STAT_FILE = ".stat"
QUIT_FILE = ".quit"

# Names that must never be removed: the mount root and put.io's top folder
PROTECTED_NAMES = frozenset({"/", "Your Files"})


def remote_error(e: PutioError, action: str) -> pyfuse3.FUSEError:
    """Log a failed remote call and map it to the nearest errno."""
    log.error(f"could not {action}: {e}")
    if e.status_code == 404:
        return pyfuse3.FUSEError(errno.ENOENT)
    return pyfuse3.FUSEError(errno.EIO)


@dataclass(frozen=True)
class DirEntry:
    """One directory listing entry."""
    name: str
    is_dir: bool
    entry: Entry


class Node:
    """Capabilities shared by every node variant."""

    def __init__(self, fs, inode: int):
        self.fs = fs
        self.inode = inode

    def attr(self) -> pyfuse3.EntryAttributes:
        raise NotImplementedError

    def _base_attr(self, mode: int, size: int, time_ns: int, timeout: float) -> pyfuse3.EntryAttributes:
        attr = pyfuse3.EntryAttributes()
        attr.st_ino = self.inode
        attr.st_mode = mode
        attr.st_nlink = 2 if stat.S_ISDIR(mode) else 1
        attr.st_size = size
        attr.st_blksize = 4096
        attr.st_blocks = (size + 511) // 512
        attr.st_atime_ns = time_ns
        attr.st_mtime_ns = time_ns
        attr.st_ctime_ns = time_ns
        attr.st_uid = os.getuid()
        attr.st_gid = os.getgid()
        attr.attr_timeout = timeout
        attr.entry_timeout = timeout
        return attr

    async def lookup(self, name: str) -> "Node":
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def read_dir_all(self) -> list[DirEntry]:
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def mkdir(self, name: str) -> "DirectoryNode":
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def create(self, name: str) -> tuple["FileNode", Handle]:
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def remove(self, name: str) -> None:
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def rename(self, old_name: str, new_dir: "Node", new_name: str) -> None:
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def symlink(self, name: str, target: str) -> "Node":
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def open(self, flags: int) -> Handle:
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def fsync(self) -> None:
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def setattr_size(self, size: int) -> None:
        raise pyfuse3.FUSEError(errno.ENOTSUP)


class RemoteNode(Node):
    """A node backed by a put.io file or folder."""

    def __init__(self, fs, inode: int, entry: Entry):
        super().__init__(fs, inode)
        self.entry = entry

    def replace_entry(self, entry: Entry) -> None:
        """Swap in a fresher snapshot, keeping the inode table in step."""
        old_key = self.entry.key
        self.entry = entry
        if entry.key != old_key:
            self.fs._rekey(self.inode, old_key, entry.key)


class DirectoryNode(RemoteNode):
    """A put.io folder."""

    def __repr__(self) -> str:
        return f"<Dir ID: {self.entry.id} Name: {self.entry.name!r}>"

    def attr(self) -> pyfuse3.EntryAttributes:
        return self._base_attr(
            stat.S_IFDIR | 0o755,
            self.entry.size,
            self.entry.created_at_ns,
            self.fs.attr_timeout,
        )

    async def _list(self) -> list[Entry]:
        try:
            return await self.fs.api.list(self.entry.id)
        except PutioError as e:
            raise remote_error(e, f"list directory {self!r}") from e

    async def lookup(self, name: str) -> Node:
        # Answered locally to keep Finder and friends off the network
        if is_junk(name):
            raise pyfuse3.FUSEError(errno.ENOENT)

        log.debug(f"lookup: {name!r} in {self.entry.name!r}")

        if name in (ACCOUNT_FILE, TRANSFERS_FILE, STAT_FILE, QUIT_FILE):
            return await self._lookup_reserved(name)

        for entry in await self._list():
            if entry.name == name:
                return self.fs._node_for_entry(entry)

        raise pyfuse3.FUSEError(errno.ENOENT)

    async def _lookup_reserved(self, name: str) -> "DiagnosticNode":
        if name == QUIT_FILE:
            log.info("Unmounting due to .quit lookup")
            pyfuse3.terminate()
            raise pyfuse3.FUSEError(errno.ENOENT)

        if name == ACCOUNT_FILE:
            account = await self.fs.refresh_account()
            content = format_account(account)
        elif name == TRANSFERS_FILE:
            try:
                transfers = await self.fs.api.list_transfers()
            except PutioError as e:
                raise remote_error(e, "list transfers") from e
            content = format_transfers(transfers)
        else:
            try:
                entry = await self.fs.api.get_file(self.entry.id)
            except PutioError as e:
                raise remote_error(e, f"stat directory {self!r}") from e
            content = format_entry(entry)

        return self.fs._new_diagnostic_node(name, content.encode("utf-8"))

    async def read_dir_all(self) -> list[DirEntry]:
        log.debug(f"readdir: {self.entry.name!r}")
        return [DirEntry(name=e.name, is_dir=e.is_dir, entry=e) for e in await self._list()]

    async def mkdir(self, name: str) -> "DirectoryNode":
        log.debug(f"mkdir: {name!r} in {self.entry.name!r}")

        # Not atomic with the create call below; a concurrent mkdir can still race
        for entry in await self._list():
            if entry.name == name:
                raise pyfuse3.FUSEError(errno.EEXIST)

        try:
            created = await self.fs.api.create_folder(name, self.entry.id)
        except PutioError as e:
            raise remote_error(e, f"create folder {name!r} in {self!r}") from e
        return self.fs._node_for_entry(created)

    async def create(self, name: str) -> tuple["FileNode", Handle]:
        """Create an empty remote file and open it for writing."""
        log.debug(f"create: {name!r} in {self.entry.name!r}")

        for entry in await self._list():
            if entry.name == name:
                raise pyfuse3.FUSEError(errno.EEXIST)

        try:
            created = await self.fs.api.upload(io.BytesIO(b""), name, self.entry.id)
        except PutioError as e:
            raise remote_error(e, f"create file {name!r} in {self!r}") from e

        node = self.fs._node_for_entry(created)
        return node, WriteHandle(node)

    async def remove(self, name: str) -> None:
        log.debug(f"remove: {name!r} in {self.entry.name!r}")

        if name in PROTECTED_NAMES:
            log.warning(f"refusing to remove {name!r}")
            raise pyfuse3.FUSEError(errno.EINVAL)

        for entry in await self._list():
            if entry.name == name:
                # put.io deletes a folder together with everything in it
                try:
                    await self.fs.api.delete(entry.id)
                except PutioError as e:
                    raise remote_error(e, f"delete {name!r}") from e
                return

        raise pyfuse3.FUSEError(errno.ENOENT)

    async def rename(self, old_name: str, new_dir: Node, new_name: str) -> None:
        """Rename and/or move `old_name` into `new_dir` as `new_name`.

        put.io renames and moves are separate calls. A cross-directory rename
        moves first and renames afterwards, so the old name never shows up
        in the destination.
        Within one directory only the rename is issued; there is nothing to
        move.
        """
        if not isinstance(new_dir, DirectoryNode):
            raise pyfuse3.FUSEError(errno.ENOTDIR)

        log.debug(f"rename: {old_name!r} in {self!r} -> {new_name!r} in {new_dir!r}")

        same_dir = new_dir.entry.id == self.entry.id
        if same_dir and old_name == new_name:
            return

        source = None
        for entry in await self._list():
            if entry.name == old_name:
                source = entry
                break
        if source is None:
            raise pyfuse3.FUSEError(errno.ENOENT)

        if not same_dir:
            try:
                await self.fs.api.move(new_dir.entry.id, source.id)
            except PutioError as e:
                raise remote_error(e, f"move {old_name!r} to {new_dir!r}") from e

        if old_name != new_name:
            try:
                await self.fs.api.rename(source.id, new_name)
            except PutioError as e:
                raise remote_error(e, f"rename {old_name!r} to {new_name!r}") from e

        # Keep any live node pointing at the new location (flush uploads there)
        tracked = self.fs._tracked_node(source.key)
        if tracked is not None:
            tracked.replace_entry(replace(tracked.entry, name=new_name, parent_id=new_dir.entry.id))

    async def symlink(self, name: str, target: str) -> Node:
        log.debug(f"symlink: {name!r} -> {target!r} rejected")
        raise pyfuse3.FUSEError(errno.ENOTSUP)


class FileNode(RemoteNode):
    """A put.io file."""

    def __repr__(self) -> str:
        return f"<File ID: {self.entry.id} Name: {self.entry.name!r} Size: {self.entry.size}>"

    def attr(self) -> pyfuse3.EntryAttributes:
        # put.io only tracks creation time; it stands in for all three
        return self._base_attr(
            stat.S_IFREG | 0o644,
            self.entry.size,
            self.entry.created_at_ns,
            self.fs.attr_timeout,
        )

    async def open(self, flags: int) -> Handle:
        log.debug(f"open: {self!r} flags={flags:#o}")

        if (flags & os.O_ACCMODE) == os.O_RDONLY:
            return ReadHandle(self)

        if flags & os.O_TRUNC:
            self.replace_entry(replace(self.entry, size=0))
        elif self.entry.size > 0:
            # Writes are uploaded as a whole new file; patching existing
            # content in place is not possible
            log.warning(f"open for in-place update of {self!r} is not supported")
            raise pyfuse3.FUSEError(errno.ENOTSUP)

        return WriteHandle(self)

    async def fsync(self) -> None:
        log.debug(f"fsync: {self!r}")
        raise pyfuse3.FUSEError(errno.ENOTSUP)

    async def setattr_size(self, size: int) -> None:
        """Record a new size locally. Nothing is sent to put.io."""
        log.debug(f"setattr: {self!r} size={size}")
        self.replace_entry(replace(self.entry, size=size))


class DiagnosticNode(Node):
    """Read-only pseudo-file whose content was computed at lookup time."""

    def __init__(self, fs, inode: int, name: str, content: bytes):
        super().__init__(fs, inode)
        self.name = name
        self.content = content

    def __repr__(self) -> str:
        return f"<Diagnostic {self.name!r} ({len(self.content)} bytes)>"

    def attr(self) -> pyfuse3.EntryAttributes:
        # Zero timeouts: every lookup recomputes the content
        return self._base_attr(stat.S_IFREG | 0o400, len(self.content), 0, 0)

    async def open(self, flags: int) -> Handle:
        if (flags & os.O_ACCMODE) != os.O_RDONLY:
            raise pyfuse3.FUSEError(errno.EACCES)
        return BufferHandle(self.content)

    async def setattr_size(self, size: int) -> None:
        raise pyfuse3.FUSEError(errno.EACCES)


def node_class_for(entry: Entry) -> type:
    return DirectoryNode if entry.is_dir else FileNode
