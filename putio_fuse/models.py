"""Data models for the put.io FUSE filesystem."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

ROOT_ID = 0
DIRECTORY_CONTENT_TYPE = "application/x-directory"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """Parse a put.io timestamp ("2006-01-02T15:04:05", UTC)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Entry:
    """Snapshot of a remote file or folder record.

    Entries are never mutated. A node that needs fresher metadata swaps in a
    new Entry; `(id, is_dir)` is the stable identity.
    """
    id: int
    name: str
    size: int = 0
    is_dir: bool = False
    parent_id: Optional[int] = None
    created_at: Optional[datetime] = None
    content_type: str = ""

    @property
    def key(self) -> tuple[int, bool]:
        return (self.id, self.is_dir)

    @property
    def created_at_ns(self) -> int:
        if self.created_at is None:
            return 0
        return int(self.created_at.timestamp() * 1e9)

    @classmethod
    def from_api(cls, data: dict) -> "Entry":
        content_type = data.get("content_type") or ""
        is_dir = content_type == DIRECTORY_CONTENT_TYPE or data.get("file_type") == "FOLDER"
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            size=int(data.get("size") or 0),
            is_dir=is_dir,
            parent_id=data.get("parent_id"),
            created_at=_parse_time(data.get("created_at")),
            content_type=content_type,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "is_dir": self.is_dir,
            "parent_id": self.parent_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "content_type": self.content_type,
        }


@dataclass
class DiskUsage:
    size: int = 0
    avail: int = 0
    used: int = 0


@dataclass
class AccountInfo:
    """Account snapshot. `raw` keeps the full API document for the .account dump."""
    username: str = ""
    mail: str = ""
    disk: DiskUsage = field(default_factory=DiskUsage)
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "AccountInfo":
        disk = data.get("disk") or {}
        return cls(
            username=data.get("username", ""),
            mail=data.get("mail", ""),
            disk=DiskUsage(
                size=int(disk.get("size") or 0),
                avail=int(disk.get("avail") or 0),
                used=int(disk.get("used") or 0),
            ),
            raw=data,
        )


@dataclass
class Transfer:
    """An active transfer as listed by /transfers/list."""
    name: str
    status: str
    size: int = 0
    downloaded: int = 0
    down_speed: int = 0
    up_speed: int = 0

    @property
    def completed(self) -> bool:
        return self.status == "COMPLETED"

    @classmethod
    def from_api(cls, data: dict) -> "Transfer":
        return cls(
            name=data.get("name") or "",
            status=data.get("status") or "",
            size=int(data.get("size") or 0),
            downloaded=int(data.get("downloaded") or 0),
            down_speed=int(data.get("down_speed") or 0),
            up_speed=int(data.get("up_speed") or 0),
        )
