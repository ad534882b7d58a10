"""HTTP API client for put.io."""

from __future__ import annotations

import logging
from typing import BinaryIO, Optional

import httpx

from .models import AccountInfo, Entry, Transfer

log = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.put.io/v2"
DEFAULT_UPLOAD_URL = "https://upload.put.io/v2"
DEFAULT_USER_AGENT = "putiofs - FUSE bridge to Put.io"


class PutioError(Exception):
    """A put.io API call failed (transport error or non-2xx status)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DownloadStream:
    """Forward-only byte stream over a ranged download response.

    `offset` is the absolute file position of the next byte `read` returns.
    """

    def __init__(self, response: httpx.Response, offset: int):
        self._response = response
        self._chunks = response.aiter_bytes()
        self._buffer = bytearray()
        self._eof = False
        self.offset = offset

    async def read(self, size: int) -> bytes:
        """Read up to `size` bytes. Fewer bytes means the stream is exhausted."""
        while len(self._buffer) < size and not self._eof:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._eof = True
                break
            except httpx.HTTPError as e:
                raise PutioError(f"download interrupted at offset {self.offset}: {e}") from e
            self._buffer += chunk

        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        self.offset += len(data)
        return data

    async def aclose(self) -> None:
        await self._response.aclose()


class PutioClient:
    """Async HTTP client for the put.io v2 API with token auth."""

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL,
                 upload_url: str = DEFAULT_UPLOAD_URL,
                 user_agent: str = DEFAULT_USER_AGENT, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._token = token
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"}

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        """Make an authenticated API request and decode the JSON body."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, headers=self._auth_headers(), **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise PutioError(f"{method} {path}: HTTP {status}", status_code=status) from e
        except httpx.HTTPError as e:
            raise PutioError(f"{method} {path}: {e}") from e
        except ValueError as e:
            raise PutioError(f"{method} {path}: invalid JSON response: {e}") from e

    async def get(self, path: str, params: Optional[dict] = None) -> dict:
        """Make authenticated GET request to API."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, data: dict = None, files: dict = None) -> dict:
        """Make authenticated POST request to API."""
        return await self._request("POST", path, data=data, files=files)

    # ── Files ─────────────────────────────────────────────────────────

    async def list(self, parent_id: int) -> list[Entry]:
        data = await self.get("/files/list", params={"parent_id": parent_id})
        return [Entry.from_api(f) for f in data.get("files") or []]

    async def get_file(self, file_id: int) -> Entry:
        data = await self.get(f"/files/{file_id}")
        return Entry.from_api(data["file"])

    async def delete(self, file_id: int) -> None:
        await self.post("/files/delete", data={"file_ids": str(file_id)})

    async def rename(self, file_id: int, new_name: str) -> None:
        await self.post("/files/rename", data={"file_id": str(file_id), "name": new_name})

    async def move(self, parent_id: int, file_id: int) -> None:
        await self.post("/files/move", data={"file_ids": str(file_id), "parent_id": str(parent_id)})

    async def create_folder(self, name: str, parent_id: int) -> Entry:
        data = await self.post("/files/create-folder", data={"name": name, "parent_id": str(parent_id)})
        return Entry.from_api(data["file"])

    async def upload(self, fileobj: BinaryIO, name: str, parent_id: int) -> Entry:
        """Upload `fileobj` as a new file. put.io never replaces an existing file."""
        data = await self._request(
            "POST",
            f"{self.upload_url}/files/upload",
            data={"filename": name, "parent_id": str(parent_id)},
            files={"file": (name, fileobj)},
        )
        if not data.get("file"):
            raise PutioError(f"upload of {name!r} did not create a file")
        return Entry.from_api(data["file"])

    async def download_range(self, file_id: int, offset: int, length: Optional[int] = None) -> DownloadStream:
        """Open a streaming download starting at `offset`.

        Without `length` the range is open-ended, so one stream can serve
        any number of sequential reads.
        """
        data = await self.get(f"/files/{file_id}/url")
        url = data["url"]

        if length is None:
            byte_range = f"bytes={offset}-"
        else:
            byte_range = f"bytes={offset}-{offset + length - 1}"

        client = await self._get_client()
        request = client.build_request(
            "GET", url,
            headers={"Range": byte_range},
            timeout=httpx.Timeout(self.timeout, read=None),
        )
        log.debug(f"download {file_id}: GET {url} Range: {byte_range}")
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise PutioError(f"download {file_id}: {e}") from e

        if response.status_code == 206 or (response.status_code == 200 and offset == 0):
            return DownloadStream(response, offset)

        await response.aclose()
        if response.status_code == 200:
            raise PutioError(f"download {file_id}: server ignored Range {byte_range}")
        raise PutioError(f"download {file_id}: HTTP {response.status_code}",
                         status_code=response.status_code)

    # ── Account & transfers ───────────────────────────────────────────

    async def account_info(self) -> AccountInfo:
        data = await self.get("/account/info")
        return AccountInfo.from_api(data.get("info") or {})

    async def list_transfers(self) -> list[Transfer]:
        data = await self.get("/transfers/list")
        return [Transfer.from_api(t) for t in data.get("transfers") or []]

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
