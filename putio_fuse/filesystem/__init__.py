"""
put.io FUSE filesystem — mixin composition.

Hierarchy:
- /                     - put.io root folder (id 0)
- /{folder}/...         - put.io folders and files, listed live
- /{any dir}/.account   - Account information as JSON (never listed)
- /{any dir}/.transfers - Active transfers table (never listed)
- /{any dir}/.stat      - The directory's own file record as JSON (never listed)
- /{any dir}/.quit      - Looking it up unmounts the filesystem

Reads stream ranged downloads. Writes are staged locally and uploaded as a
new file on flush; the old remote file is deleted first.
"""

from .base import BaseMixin
from .directory import DirectoryMixin
from .inode import InodeMixin
from .read import ReadMixin
from .write import WriteMixin


class PutioFS(
    WriteMixin,        # write, flush, fsync, release
    ReadMixin,         # open, read, handle table
    DirectoryMixin,    # lookup, readdir, mkdir, create, unlink, rmdir, rename, symlink
    InodeMixin,        # getattr, setattr, forget, node table
    BaseMixin,         # __init__, resolve_root, statfs, xattrs, destroy (MUST be last)
):
    """put.io FUSE Filesystem.

    Composed from mixins. BaseMixin must be last in MRO so its __init__
    runs first and sets up all shared state.
    """
    pass


__all__ = ["PutioFS"]
