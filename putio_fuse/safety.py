"""
Safety fences for putiofs.

Mountpoint validation and FUSE mount detection.
"""

import errno
import logging
import os
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

FSNAME = "putiofs"

# System paths that must never be used as mountpoints
BLOCKED_PATHS = frozenset({
    "/", "/home", "/etc", "/usr", "/var", "/tmp", "/boot",
    "/bin", "/sbin", "/lib", "/lib64", "/dev", "/proc", "/sys",
    "/root", "/opt", "/srv", "/run", "/mnt",
})


def validate_mountpoint(path: str) -> Optional[str]:
    """Validate a mountpoint path. Returns error message or None if OK."""
    resolved = os.path.realpath(path)

    if resolved in BLOCKED_PATHS:
        return f"Refusing to mount at {resolved}: this is a system directory."

    if not os.path.exists(resolved):
        return f"{resolved} does not exist. Create it first: mkdir -p {resolved}"

    if not os.path.isdir(resolved):
        return f"{resolved} is not a directory."

    for m in find_all_fuse_mounts():
        if os.path.realpath(m["mountpoint"]) == resolved:
            if m["is_ours"] and is_mount_orphaned(resolved):
                return (
                    f"{resolved} has a stale putiofs mount (transport endpoint not connected).\n"
                    f"Clean it up first: fusermount -u {resolved}"
                )
            if m["is_ours"]:
                return (
                    f"{resolved} already has a putiofs mount active.\n"
                    f"Unmount first: fusermount -u {resolved}"
                )
            return f"{resolved} is already a FUSE mount ({m['source']}, type {m['fstype']})."

    try:
        contents = os.listdir(resolved)
    except PermissionError:
        return f"Cannot read {resolved}: permission denied."
    if contents:
        count = len(contents)
        return (
            f"{resolved} is not empty (contains {count} item{'s' if count != 1 else ''}).\n"
            f"FUSE mounts shadow existing directory contents; use an empty directory."
        )

    return None


def find_all_fuse_mounts() -> list[dict]:
    """Find all FUSE mounts on the system.

    Returns list of {"source": str, "mountpoint": str, "fstype": str, "is_ours": bool}.
    """
    mounts = []
    try:
        for line in Path("/proc/mounts").read_text().splitlines():
            parts = line.split()
            if len(parts) >= 3 and "fuse" in parts[2].lower():
                mounts.append({
                    "source": parts[0],
                    "mountpoint": parts[1],
                    "fstype": parts[2],
                    "is_ours": parts[0] == FSNAME,
                })
    except OSError:
        pass
    return mounts


def is_mount_orphaned(mountpoint: str) -> bool:
    """Check if a FUSE mount is orphaned (transport endpoint not connected)."""
    try:
        os.statvfs(mountpoint)
        return False
    except OSError as e:
        return e.errno == errno.ENOTCONN
