"""Tests for the put.io HTTP client against an httpx.MockTransport."""

import io
import json
import pytest
import typing
from urllib.parse import parse_qs

import httpx

from putio_fuse.api_client import PutioClient, PutioError
from putio_fuse.models import Entry, Transfer

FOLDER = {
    "id": 7, "name": "Movies", "size": 0, "parent_id": 0,
    "content_type": "application/x-directory", "file_type": "FOLDER",
    "created_at": "2024-01-02T03:04:05",
}
FILE = {
    "id": 8, "name": "a.txt", "size": 11, "parent_id": 7,
    "content_type": "text/plain", "file_type": "TEXT",
    "created_at": "2024-01-02T03:04:05",
}
CONTENT = b"hello world"


def _make_client(handler):
    """PutioClient whose requests are all answered by `handler`."""
    requests = []

    def _record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = PutioClient("secret-token", transport=httpx.MockTransport(_record))
    return client, requests


def _form(request: httpx.Request) -> dict:
    return {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}


def _cdn_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/v2/files/8/url":
        return httpx.Response(200, json={"url": "https://cdn.example.com/dl/8"})
    assert request.url.host == "cdn.example.com"
    start, _, end = request.headers["Range"].removeprefix("bytes=").partition("-")
    start = int(start)
    if start >= len(CONTENT):
        return httpx.Response(416)
    stop = int(end) + 1 if end else len(CONTENT)
    return httpx.Response(206, content=CONTENT[start:stop])


class TestRequests:

    @pytest.mark.anyio
    async def test_sends_bearer_token_and_user_agent(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"file": FOLDER}))

        await client.get_file(7)

        assert requests[0].headers["Authorization"] == "Bearer secret-token"
        assert requests[0].headers["User-Agent"] == "putiofs - FUSE bridge to Put.io"
        assert str(requests[0].url) == "https://api.put.io/v2/files/7"
        await client.close()

    @pytest.mark.anyio
    async def test_list_parses_entries(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"files": [FOLDER, FILE]}))

        entries = await client.list(0)

        assert requests[0].url.params["parent_id"] == "0"
        assert [(e.id, e.name, e.is_dir) for e in entries] == [(7, "Movies", True), (8, "a.txt", False)]
        assert entries[1].size == 11
        assert entries[1].parent_id == 7

    @pytest.mark.anyio
    async def test_list_empty_folder(self):
        client, _ = _make_client(lambda r: httpx.Response(200, json={"files": None}))
        assert await client.list(7) == []

    @pytest.mark.anyio
    async def test_http_error_carries_status(self):
        client, _ = _make_client(lambda r: httpx.Response(404, json={"error_type": "NotFound"}))

        with pytest.raises(PutioError) as exc_info:
            await client.get_file(99)
        assert exc_info.value.status_code == 404

    @pytest.mark.anyio
    async def test_transport_error_is_putio_error(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        client, _ = _make_client(handler)
        with pytest.raises(PutioError) as exc_info:
            await client.list(0)
        assert exc_info.value.status_code is None

    @pytest.mark.anyio
    async def test_invalid_json_is_putio_error(self):
        client, _ = _make_client(lambda r: httpx.Response(200, content=b"<html>"))
        with pytest.raises(PutioError):
            await client.list(0)


class TestMutations:

    @pytest.mark.anyio
    async def test_delete(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"status": "OK"}))
        await client.delete(8)
        assert requests[0].method == "POST"
        assert requests[0].url.path == "/v2/files/delete"
        assert _form(requests[0]) == {"file_ids": "8"}

    @pytest.mark.anyio
    async def test_rename(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"status": "OK"}))
        await client.rename(8, "b.txt")
        assert requests[0].url.path == "/v2/files/rename"
        assert _form(requests[0]) == {"file_id": "8", "name": "b.txt"}

    @pytest.mark.anyio
    async def test_move(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"status": "OK"}))
        await client.move(7, 8)
        assert requests[0].url.path == "/v2/files/move"
        assert _form(requests[0]) == {"file_ids": "8", "parent_id": "7"}

    @pytest.mark.anyio
    async def test_create_folder(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"file": FOLDER}))
        entry = await client.create_folder("Movies", 0)
        assert requests[0].url.path == "/v2/files/create-folder"
        assert _form(requests[0]) == {"name": "Movies", "parent_id": "0"}
        assert entry.is_dir

    @pytest.mark.anyio
    async def test_upload_goes_to_upload_host(self):
        client, requests = _make_client(lambda r: httpx.Response(200, json={"file": FILE}))

        entry = await client.upload(io.BytesIO(CONTENT), "a.txt", 7)

        assert str(requests[0].url) == "https://upload.put.io/v2/files/upload"
        assert requests[0].headers["Content-Type"].startswith("multipart/form-data")
        assert CONTENT in requests[0].content
        assert b'name="parent_id"' in requests[0].content
        assert entry.id == 8

    @pytest.mark.anyio
    async def test_upload_without_file_record_fails(self):
        client, _ = _make_client(lambda r: httpx.Response(200, json={"transfer": {"id": 1}}))
        with pytest.raises(PutioError):
            await client.upload(io.BytesIO(b"x"), "a.torrent", 0)


class TestDownloadRange:

    @pytest.mark.anyio
    async def test_open_ended_range(self):
        client, requests = _make_client(_cdn_handler)

        stream = await client.download_range(8, 6)
        data = await stream.read(100)
        await stream.aclose()

        assert data == b"world"
        assert requests[1].headers["Range"] == "bytes=6-"
        assert stream.offset == 11

    @pytest.mark.anyio
    async def test_bounded_range(self):
        client, requests = _make_client(_cdn_handler)

        stream = await client.download_range(8, 0, length=5)

        assert await stream.read(100) == b"hello"
        assert requests[1].headers["Range"] == "bytes=0-4"

    @pytest.mark.anyio
    async def test_stream_reads_in_pieces(self):
        client, _ = _make_client(_cdn_handler)

        stream = await client.download_range(8, 0)

        assert await stream.read(3) == b"hel"
        assert await stream.read(3) == b"lo "
        assert stream.offset == 6
        assert await stream.read(100) == b"world"
        assert await stream.read(100) == b""

    @pytest.mark.anyio
    async def test_unsatisfiable_range(self):
        client, _ = _make_client(_cdn_handler)
        with pytest.raises(PutioError) as exc_info:
            await client.download_range(8, 50)
        assert exc_info.value.status_code == 416

    @pytest.mark.anyio
    async def test_ignored_range_at_nonzero_offset_fails(self):
        def handler(request):
            if request.url.path.endswith("/url"):
                return httpx.Response(200, json={"url": "https://cdn.example.com/dl/8"})
            return httpx.Response(200, content=CONTENT)

        client, _ = _make_client(handler)
        with pytest.raises(PutioError):
            await client.download_range(8, 3)

    @pytest.mark.anyio
    async def test_full_response_accepted_at_zero(self):
        def handler(request):
            if request.url.path.endswith("/url"):
                return httpx.Response(200, json={"url": "https://cdn.example.com/dl/8"})
            return httpx.Response(200, content=CONTENT)

        client, _ = _make_client(handler)
        stream = await client.download_range(8, 0)
        assert await stream.read(100) == CONTENT


class TestAccount:

    @pytest.mark.anyio
    async def test_account_info(self):
        info = {"username": "alice", "mail": "a@example.com",
                "disk": {"size": 1000, "avail": 400, "used": 600}}
        client, requests = _make_client(lambda r: httpx.Response(200, json={"info": info, "status": "OK"}))

        account = await client.account_info()

        assert requests[0].url.path == "/v2/account/info"
        assert account.username == "alice"
        assert account.disk.avail == 400
        assert json.loads(json.dumps(account.raw)) == info

    @pytest.mark.anyio
    async def test_list_transfers(self):
        transfers = [{"name": "x.iso", "status": "DOWNLOADING", "size": 10, "downloaded": 5,
                      "down_speed": 1, "up_speed": 0}]
        client, _ = _make_client(lambda r: httpx.Response(200, json={"transfers": transfers}))

        result = await client.list_transfers()

        assert result[0].name == "x.iso"
        assert not result[0].completed


class TestAnnotations:

    def test_list_returns_resolve_to_builtin_list(self):
        # The client defines its own `list` method, which must not shadow the builtin
        assert typing.get_type_hints(PutioClient.list)["return"] == list[Entry]
        assert typing.get_type_hints(PutioClient.list_transfers)["return"] == list[Transfer]
