"""Shared fixtures: an in-memory put.io store and a PutioFS wired to it."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

import pyfuse3

from putio_fuse.api_client import PutioError
from putio_fuse.config import FsConfig
from putio_fuse.filesystem import PutioFS
from putio_fuse.filesystem.nodes import DirectoryNode
from putio_fuse.models import ROOT_ID, AccountInfo, Entry, Transfer

CREATED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class FakeStream:
    """In-memory stand-in for DownloadStream."""

    def __init__(self, data: bytes, offset: int):
        self._data = data
        self._pos = 0
        self.offset = offset
        self.closed = False

    async def read(self, size: int) -> bytes:
        if self.closed:
            raise PutioError("read on a closed stream")
        chunk = self._data[self._pos:self._pos + size]
        self._pos += len(chunk)
        self.offset += len(chunk)
        return chunk

    async def aclose(self) -> None:
        self.closed = True


class FakePutio:
    """In-memory put.io store exposing the PutioClient surface.

    Every call is recorded in `calls` as (method, *args). Setting
    `errors[method]` makes the next call to that method raise.
    """

    def __init__(self):
        self.files: dict[int, Entry] = {
            ROOT_ID: Entry(id=ROOT_ID, name="Your Files", is_dir=True, created_at=CREATED,
                           content_type="application/x-directory"),
        }
        self.content: dict[int, bytes] = {}
        self.calls: list[tuple] = []
        self.errors: dict[str, PutioError] = {}
        self.streams: list[FakeStream] = []
        self.transfers: list[Transfer] = []
        self.account = AccountInfo.from_api({
            "username": "alice",
            "mail": "alice@example.com",
            "disk": {"size": 4096 * 100, "avail": 4096 * 40, "used": 4096 * 60},
        })
        self._next_id = 100

    # ── Test setup helpers ────────────────────────────────────────────

    def add_dir(self, name: str, parent_id: int = ROOT_ID) -> Entry:
        return self._add(name, parent_id, is_dir=True)

    def add_file(self, name: str, data: bytes = b"", parent_id: int = ROOT_ID) -> Entry:
        entry = self._add(name, parent_id, size=len(data))
        self.content[entry.id] = data
        return entry

    def _add(self, name: str, parent_id: int, is_dir: bool = False, size: int = 0) -> Entry:
        entry = Entry(
            id=self._next_id, name=name, size=size, is_dir=is_dir, parent_id=parent_id,
            created_at=CREATED,
            content_type="application/x-directory" if is_dir else "text/plain",
        )
        self._next_id += 1
        self.files[entry.id] = entry
        return entry

    def calls_to(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    def find(self, name: str, parent_id: int = ROOT_ID):
        for entry in self.files.values():
            if entry.name == name and entry.parent_id == parent_id and entry.id != ROOT_ID:
                return entry
        return None

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        error = self.errors.pop(method, None)
        if error is not None:
            raise error

    def _get(self, file_id: int) -> Entry:
        if file_id not in self.files:
            raise PutioError(f"file {file_id} not found", status_code=404)
        return self.files[file_id]

    # ── PutioClient surface ───────────────────────────────────────────

    async def list(self, parent_id: int) -> list[Entry]:
        self._record("list", parent_id)
        return [e for e in self.files.values() if e.parent_id == parent_id and e.id != ROOT_ID]

    async def get_file(self, file_id: int) -> Entry:
        self._record("get_file", file_id)
        return self._get(file_id)

    async def delete(self, file_id: int) -> None:
        self._record("delete", file_id)
        self._get(file_id)
        del self.files[file_id]
        self.content.pop(file_id, None)

    async def rename(self, file_id: int, new_name: str) -> None:
        self._record("rename", file_id, new_name)
        entry = self._get(file_id)
        self.files[file_id] = replace(entry, name=new_name)

    async def move(self, parent_id: int, file_id: int) -> None:
        self._record("move", parent_id, file_id)
        entry = self._get(file_id)
        self.files[file_id] = replace(entry, parent_id=parent_id)

    async def create_folder(self, name: str, parent_id: int) -> Entry:
        self._record("create_folder", name, parent_id)
        return self.add_dir(name, parent_id)

    async def upload(self, fileobj, name: str, parent_id: int) -> Entry:
        self._record("upload", name, parent_id)
        return self.add_file(name, fileobj.read(), parent_id)

    async def download_range(self, file_id: int, offset: int, length=None) -> FakeStream:
        self._record("download_range", file_id, offset)
        data = self.content[self._get(file_id).id]
        if offset >= len(data) and offset > 0:
            raise PutioError("range not satisfiable", status_code=416)
        end = len(data) if length is None else offset + length
        stream = FakeStream(data[offset:end], offset)
        self.streams.append(stream)
        return stream

    async def account_info(self) -> AccountInfo:
        self._record("account_info")
        return self.account

    async def list_transfers(self) -> list[Transfer]:
        self._record("list_transfers")
        return list(self.transfers)

    async def close(self) -> None:
        self._record("close")


@pytest.fixture
def anyio_backend():
    """Handles lock with trio primitives, as under pyfuse3."""
    return "trio"


@pytest.fixture
def store():
    return FakePutio()


@pytest.fixture
def fs(store):
    """A PutioFS with its root resolved against the fake store, no calls recorded."""
    fs = PutioFS(store, FsConfig(token="test-token"))
    fs._nodes[fs.ROOT_INODE] = DirectoryNode(fs, fs.ROOT_INODE, store.files[ROOT_ID])
    fs._inodes_by_key[store.files[ROOT_ID].key] = fs.ROOT_INODE
    fs.account = store.account
    return fs


@pytest.fixture
def ctx():
    """A mock pyfuse3.RequestContext."""
    ctx = MagicMock(spec=pyfuse3.RequestContext)
    ctx.uid = 1000
    ctx.gid = 1000
    ctx.pid = 12345
    return ctx
