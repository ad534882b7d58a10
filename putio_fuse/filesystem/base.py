"""
BaseMixin — Mount-scoped state and core FUSE plumbing.

Holds everything that lives for the whole mount: the API client, the root
node, the account snapshot, the attribute TTL policy and the inode/handle
tables. Also handles statfs, extended attributes and teardown.
"""

import errno
import logging

import pyfuse3

from ..api_client import PutioClient, PutioError
from ..config import FsConfig
from ..models import ROOT_ID, AccountInfo
from .handles import Handle
from .nodes import DirectoryNode, DirEntry, Node

log = logging.getLogger(__name__)


class BaseMixin(pyfuse3.Operations):
    """Mount-scoped state and core FUSE plumbing."""

    ROOT_INODE = pyfuse3.ROOT_INODE  # 1
    BLOCK_SIZE = 4096

    def __init__(self, api: PutioClient, config: FsConfig = None):
        super().__init__()
        self.config = config or FsConfig()
        self.api = api

        # Refreshed eagerly at mount and lazily when .account is looked up.
        # Replaced wholesale, never mutated; readers only display it.
        self.account = AccountInfo()

        # Inode table: inode -> node, plus (remote id, is_dir) -> inode
        self._nodes: dict[int, Node] = {}
        self._inodes_by_key: dict[tuple[int, bool], int] = {}
        self._lookup_counts: dict[int, int] = {}
        self._next_inode = self.ROOT_INODE + 1

        # Open file handles and directory listings share one fh counter
        self._handles: dict[int, Handle] = {}
        self._dir_listings: dict[int, list[DirEntry]] = {}
        self._next_fh = 1

    @property
    def attr_timeout(self) -> float:
        """How long the kernel may cache attributes of remote nodes."""
        return self.config.attr_timeout

    @property
    def root(self) -> DirectoryNode:
        return self._nodes[self.ROOT_INODE]

    async def resolve_root(self) -> DirectoryNode:
        """Fetch the store root and the account snapshot. Call before mounting.

        Raises PutioError if put.io can't be reached; there is nothing to
        mount without a root.
        """
        entry = await self.api.get_file(ROOT_ID)
        root = DirectoryNode(self, self.ROOT_INODE, entry)
        self._nodes[self.ROOT_INODE] = root
        self._inodes_by_key[entry.key] = self.ROOT_INODE

        self.account = await self.api.account_info()
        log.info(f"Mounted put.io account {self.account.username!r}")
        return root

    async def refresh_account(self) -> AccountInfo:
        """Re-fetch the account snapshot, falling back to the last one."""
        try:
            self.account = await self.api.account_info()
        except PutioError as e:
            log.warning(f"could not refresh account information, using snapshot: {e}")
        return self.account

    async def statfs(self, ctx: pyfuse3.RequestContext) -> pyfuse3.StatvfsData:
        """Report put.io disk quota as filesystem capacity."""
        disk = self.account.disk
        s = pyfuse3.StatvfsData()
        s.f_bsize = self.BLOCK_SIZE
        s.f_frsize = self.BLOCK_SIZE
        s.f_blocks = disk.size // self.BLOCK_SIZE
        s.f_bfree = disk.avail // self.BLOCK_SIZE
        s.f_bavail = disk.avail // self.BLOCK_SIZE
        s.f_files = len(self._nodes)
        s.f_ffree = 1024 * 1024
        s.f_favail = 1024 * 1024
        s.f_namemax = 255
        return s

    # ── Extended attributes (not stored by put.io) ─────────────────────

    async def getxattr(self, inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> bytes:
        raise pyfuse3.FUSEError(errno.ENODATA)

    async def listxattr(self, inode: int, ctx: pyfuse3.RequestContext) -> list[bytes]:
        return []

    async def setxattr(self, inode: int, name: bytes, value: bytes, ctx: pyfuse3.RequestContext) -> None:
        log.debug(f"setxattr: ignoring {name!r} on inode {inode}")

    async def removexattr(self, inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> None:
        log.debug(f"removexattr: ignoring {name!r} on inode {inode}")

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def destroy(self) -> None:
        """Clean up resources on unmount. Unflushed writes are dropped."""
        log.info("Destroying filesystem, cleaning up resources")

        for fh, handle in list(self._handles.items()):
            del self._handles[fh]
            await handle.release()

        await self.api.close()
        self._nodes.clear()
        self._inodes_by_key.clear()
        self._lookup_counts.clear()
        self._dir_listings.clear()
