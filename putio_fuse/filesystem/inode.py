"""
InodeMixin — Inode table management and attribute resolution.

Handles getattr, setattr, forget, inode allocation and the canonical
node-per-remote-object table.
"""

import errno
import logging
from typing import Optional

import pyfuse3

from ..models import Entry
from .nodes import DiagnosticNode, Node, RemoteNode, node_class_for

log = logging.getLogger(__name__)


class InodeMixin:
    """Inode table management and attribute resolution."""

    def _allocate_inode(self) -> int:
        inode = self._next_inode
        self._next_inode += 1
        return inode

    def _node(self, inode: int) -> Node:
        node = self._nodes.get(inode)
        if node is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        return node

    def _node_for_entry(self, entry: Entry) -> RemoteNode:
        """Return the node for a remote object, creating it on first sight.

        One node per (id, is_dir): a known object gets its snapshot
        refreshed instead of a second inode.
        """
        inode = self._inodes_by_key.get(entry.key)
        if inode is not None:
            node = self._nodes[inode]
            node.replace_entry(entry)
            return node

        inode = self._allocate_inode()
        node = node_class_for(entry)(self, inode, entry)
        self._nodes[inode] = node
        self._inodes_by_key[entry.key] = inode
        return node

    def _new_diagnostic_node(self, name: str, content: bytes) -> DiagnosticNode:
        node = DiagnosticNode(self, self._allocate_inode(), name, content)
        self._nodes[node.inode] = node
        return node

    def _tracked_node(self, key: tuple[int, bool]) -> Optional[RemoteNode]:
        inode = self._inodes_by_key.get(key)
        if inode is None:
            return None
        return self._nodes.get(inode)

    def _rekey(self, inode: int, old_key: tuple[int, bool], new_key: tuple[int, bool]) -> None:
        """Point the inode table at a node's new remote identity (after re-upload)."""
        if self._inodes_by_key.get(old_key) == inode:
            del self._inodes_by_key[old_key]
        self._inodes_by_key[new_key] = inode

    def _count_lookup(self, inode: int) -> None:
        if inode == self.ROOT_INODE:
            return
        self._lookup_counts[inode] = self._lookup_counts.get(inode, 0) + 1

    def _drop_node(self, inode: int) -> None:
        node = self._nodes.pop(inode, None)
        self._lookup_counts.pop(inode, None)
        if isinstance(node, RemoteNode) and self._inodes_by_key.get(node.entry.key) == inode:
            del self._inodes_by_key[node.entry.key]

    async def getattr(self, inode: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Get file/directory attributes from the node's current snapshot."""
        return self._node(inode).attr()

    async def setattr(self, inode: int, attr: pyfuse3.EntryAttributes, fields: pyfuse3.SetattrFields, fh: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Apply a size change; put.io has nowhere to keep modes, owners or times."""
        node = self._node(inode)
        if fields.update_size:
            await node.setattr_size(attr.st_size)
        return node.attr()

    async def forget(self, inode_list: list[tuple[int, int]]) -> None:
        """Drop nodes the kernel no longer references."""
        for inode, nlookup in inode_list:
            if inode == self.ROOT_INODE or inode not in self._nodes:
                continue
            remaining = self._lookup_counts.get(inode, 0) - nlookup
            if remaining > 0:
                self._lookup_counts[inode] = remaining
                continue
            if any(getattr(h, "node", None) is self._nodes[inode] for h in self._handles.values()):
                self._lookup_counts[inode] = 0
                continue
            log.debug(f"forget: dropping inode {inode}")
            self._drop_node(inode)
