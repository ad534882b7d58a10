"""Names that file managers and tools probe for on every directory.

Finder, Spotlight, version control tools and desktop environments stat a
handful of hidden files per directory. None of them exist on put.io, so
lookups for them are answered locally instead of listing the directory.
"""

import posixpath

JUNK_PREFIXES = (
    # macOS
    "._",
    ".DS_Store",
    ".Spotlight-",
    ".ql_",
    ".hidden",
    ".metadata_never_index",
    ".nomedia",

    # version control
    ".git",
    ".hg",
    ".bzr",
    ".svn",
    "_darcs",

    # misc
    ".envrc",      # direnv
    ".Trash-",     # nautilus
    ".localized",
)


def is_junk(name: str) -> bool:
    """Report whether the final path component of `name` is probe noise."""
    filename = posixpath.basename(name)
    return filename.startswith(JUNK_PREFIXES)
