"""Configure test paths and shared HTTP fakes."""
import re
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
import orjson
import pytest

# Add src/ to path so tests can import the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bgg_rules_extractor.fetcher import PageFetcher  # noqa: E402
from bgg_rules_extractor.store import DriveStoreClient  # noqa: E402


class FakeSite:
    """Serve canned pages by URL; unknown URLs get a 404."""

    def __init__(self, pages: Optional[Dict[str, object]] = None):
        self.pages: Dict[str, object] = dict(pages or {})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        page = self.pages.get(url)
        if page is None:
            return httpx.Response(404, text="not found")
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return httpx.Response(page, text="error")
        return httpx.Response(200, text=page, headers={"Content-Type": "text/html"})

    @property
    def fetched(self):
        return [str(r.url) for r in self.requests]


class FakeDrive:
    """
    In-memory stand-in for the Drive v3 endpoints the client uses.

    Files are dicts with id, name, parents, mimeType and content.
    """

    def __init__(self, token: str = "good-token"):
        self.token = token
        self.files: Dict[str, dict] = {}
        self.calls = []
        self.fail_uploads_with: Optional[int] = None
        self._next_id = 1

    def add(self, name: str, parent: str = "root", mime_type: str = "text/plain",
            content: bytes = b"") -> str:
        file_id = f"file{self._next_id}"
        self._next_id += 1
        self.files[file_id] = {
            "id": file_id, "name": name, "parents": [parent],
            "mimeType": mime_type, "content": content,
        }
        return file_id

    def _json(self, data, status=200):
        return httpx.Response(status, content=orjson.dumps(data),
                              headers={"Content-Type": "application/json"})

    def _public(self, f):
        return {"id": f["id"], "name": f["name"],
                "webViewLink": f"https://drive.google.com/file/d/{f['id']}/view"}

    def _query(self, q: str):
        parent = re.search(r"'((?:[^'\\]|\\.)*)' in parents", q).group(1)
        name = re.search(r"name = '((?:[^'\\]|\\.)*)'", q)
        mime = re.search(r"mimeType = '([^']*)'", q)
        result = [f for f in self.files.values() if parent in f["parents"]]
        if name:
            wanted = name.group(1).replace("\\'", "'").replace("\\\\", "\\")
            result = [f for f in result if f["name"] == wanted]
        if mime:
            result = [f for f in result if f["mimeType"] == mime.group(1)]
        return result

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return self._json({"error": {"message": "Invalid Credentials"}}, status=401)

        path = request.url.path
        params = request.url.params

        if request.method == "GET" and path.endswith("/about"):
            return self._json({"user": {"displayName": "Tester"}})

        if request.method == "GET" and path.endswith("/files"):
            found = self._query(params["q"])
            if params.get("orderBy") == "name":
                found.sort(key=lambda f: f["name"])
            return self._json({"files": [self._public(f) for f in found]})

        if self.fail_uploads_with and path.startswith("/upload/"):
            return self._json({"error": {"message": "rejected"}}, status=self.fail_uploads_with)

        if request.method == "POST" and path == "/upload/drive/v3/files":
            body = request.content
            boundary = re.search(r"boundary=(\S+)", request.headers["Content-Type"]).group(1)
            parts = body.split(f"--{boundary}".encode())
            meta = orjson.loads(parts[1].split(b"\r\n\r\n", 1)[1].rstrip(b"\r\n"))
            content = parts[2].split(b"\r\n\r\n", 1)[1][:-2]
            file_id = self.add(meta["name"], meta["parents"][0], content=content)
            self.files[file_id]["description"] = meta.get("description")
            return self._json(self._public(self.files[file_id]))

        if request.method == "PATCH" and path.startswith("/upload/drive/v3/files/"):
            file_id = path.rsplit("/", 1)[1]
            if file_id not in self.files:
                return self._json({"error": {"message": "File not found"}}, status=404)
            self.files[file_id]["content"] = request.content
            return self._json(self._public(self.files[file_id]))

        if request.method == "POST" and path == "/drive/v3/files":
            meta = orjson.loads(request.content)
            file_id = self.add(meta["name"], meta["parents"][0], mime_type=meta["mimeType"])
            return self._json({"id": file_id, "name": meta["name"]})

        return self._json({"error": {"message": "unexpected"}}, status=400)

    def count(self, method: str, prefix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.startswith(prefix))


def make_fetcher(handler: Callable) -> PageFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PageFetcher(client=client, request_delay=0)


def make_store(drive: FakeDrive, token: Optional[str] = None) -> DriveStoreClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(drive))
    return DriveStoreClient(token or drive.token, client=client)


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def drive():
    return FakeDrive()
