"""
Google Drive v3 client for storing the export document.

Uploads are an upsert keyed on (folder, file name): an existing file with
the same name in the same folder has its content replaced, otherwise a
new file is created. Re-running an export therefore never piles up
copies.

Two processes exporting the same game into the same folder at the same
moment can both miss the lookup and both create a file.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

import httpx
import orjson

from .config import DEFAULT_CONTAINER, DRIVE_API_URL, DRIVE_UPLOAD_URL, REQUEST_TIMEOUT
from .errors import StoreAuthError, StoreError, StoreUnavailableError
from .models import ArtifactRef

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
TEXT_MIME_TYPE = "text/plain; charset=utf-8"
FILE_FIELDS = "id,name,webViewLink"
APP_DATA_FOLDER = "appDataFolder"
DESCRIPTION_TEMPLATE = "BGG Rules forum export for {title}"


def quote_query_value(value: str) -> str:
    """Escape a value for a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def view_url(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"


def build_multipart_body(metadata: Dict[str, Any], content: bytes, boundary: str) -> bytes:
    """
    Build a multipart/related body: JSON metadata part, then the content part.
    """
    return b"".join([
        f"--{boundary}\r\n".encode(),
        b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
        orjson.dumps(metadata),
        b"\r\n",
        f"--{boundary}\r\n".encode(),
        f"Content-Type: {TEXT_MIME_TYPE}\r\n\r\n".encode(),
        content,
        b"\r\n",
        f"--{boundary}--\r\n".encode(),
    ])


class DriveStoreClient:
    """
    Minimal Drive REST client authenticated with an OAuth access token.

    The token is supplied by the caller; obtaining and refreshing it is
    outside this package.

    Usage:
        async with DriveStoreClient(token) as store:
            ref = await store.upload("root", "Catan.txt", document)
    """

    def __init__(
        self,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = DRIVE_API_URL,
        upload_url: str = DRIVE_UPLOAD_URL,
        request_timeout: float = REQUEST_TIMEOUT,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")
        self.request_timeout = request_timeout
        self.client = client
        self._own_client = client is None

    async def __aenter__(self) -> "DriveStoreClient":
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.request_timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        if self._own_client and self.client is not None:
            await self.client.aclose()
            self.client = None

    # -------------------------------------------------------
    # TRANSPORT
    # -------------------------------------------------------

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
        if self.client is None:
            raise RuntimeError("DriveStoreClient is not open; use it with async with")

        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.error("%s failed: %s", operation, e)
            raise StoreUnavailableError(url, str(e) or type(e).__name__, operation) from e

        if response.status_code in (401, 403):
            raise StoreAuthError(response.status_code, response.text, operation)
        if not response.is_success:
            logger.error("%s failed: HTTP %d", operation, response.status_code)
            raise StoreError(response.status_code, response.text, operation)
        if not response.content:
            return {}
        return orjson.loads(response.content)

    @staticmethod
    def _spaces(container: str) -> str:
        return APP_DATA_FOLDER if container == APP_DATA_FOLDER else "drive"

    @staticmethod
    def _to_ref(data: Dict[str, Any], container: Optional[str]) -> ArtifactRef:
        return ArtifactRef(
            artifact_id=data["id"],
            artifact_name=data.get("name", ""),
            artifact_url=data.get("webViewLink") or view_url(data["id"]),
            container=container,
        )

    # -------------------------------------------------------
    # OPERATIONS
    # -------------------------------------------------------

    async def check_access(self) -> Dict[str, Any]:
        """
        Verify the token by asking Drive who it belongs to.

        Raises:
            StoreAuthError: the token is missing, expired or revoked
        """
        data = await self._request(
            "Access check", "GET", f"{self.api_url}/about", params={"fields": "user"}
        )
        return data.get("user", {})

    async def find_existing(self, container: str, name: str) -> Optional[ArtifactRef]:
        """Return the first non-trashed file named ``name`` directly in ``container``."""
        container = container or DEFAULT_CONTAINER
        query = (
            f"name = '{quote_query_value(name)}' "
            f"and '{quote_query_value(container)}' in parents "
            f"and trashed = false"
        )
        data = await self._request(
            "Lookup", "GET", f"{self.api_url}/files",
            params={
                "q": query,
                "spaces": self._spaces(container),
                "fields": f"files({FILE_FIELDS})",
                "pageSize": "10",
            },
        )
        files = data.get("files") or []
        if not files:
            return None
        return self._to_ref(files[0], container)

    async def upload(
        self,
        container: str,
        name: str,
        content: str,
        title: Optional[str] = None,
    ) -> ArtifactRef:
        """
        Create ``name`` in ``container``, or replace its content if it exists.

        ``title`` is the game title used in the file description of a newly
        created file; it defaults to ``name``.

        Raises:
            StoreError: Drive rejected the lookup or the upload
            StoreUnavailableError: Drive could not be reached
        """
        container = container or DEFAULT_CONTAINER
        payload = content.encode("utf-8")
        existing = await self.find_existing(container, name)

        if existing is not None:
            logger.info("Replacing existing file %s (%s)", name, existing.artifact_id)
            data = await self._request(
                "Upload", "PATCH", f"{self.upload_url}/files/{existing.artifact_id}",
                params={"uploadType": "media", "fields": FILE_FIELDS},
                headers={"Content-Type": TEXT_MIME_TYPE},
                content=payload,
            )
            return self._to_ref({**data, "name": data.get("name") or name}, container)

        logger.info("Creating %s in folder %s", name, container)
        boundary = f"bgg-rules-{uuid.uuid4().hex}"
        metadata = {
            "name": name,
            "parents": [container],
            "mimeType": "text/plain",
            "description": DESCRIPTION_TEMPLATE.format(title=title or name),
        }
        data = await self._request(
            "Upload", "POST", f"{self.upload_url}/files",
            params={"uploadType": "multipart", "fields": FILE_FIELDS},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=build_multipart_body(metadata, payload, boundary),
        )
        return self._to_ref(data, container)

    async def list_folders(self, container: str = DEFAULT_CONTAINER) -> List[Tuple[str, str]]:
        """Return (id, name) of the folders directly inside ``container``, by name."""
        container = container or DEFAULT_CONTAINER
        query = (
            f"mimeType = '{FOLDER_MIME_TYPE}' "
            f"and '{quote_query_value(container)}' in parents "
            f"and trashed = false"
        )
        folders: List[Tuple[str, str]] = []
        page_token: Optional[str] = None
        while True:
            params = {
                "q": query,
                "orderBy": "name",
                "fields": "nextPageToken, files(id,name)",
                "pageSize": "100",
            }
            if page_token:
                params["pageToken"] = page_token
            data = await self._request("Folder listing", "GET", f"{self.api_url}/files", params=params)
            folders.extend((f["id"], f.get("name", "")) for f in data.get("files") or [])
            page_token = data.get("nextPageToken")
            if not page_token:
                return folders

    async def create_folder(self, name: str, container: str = DEFAULT_CONTAINER) -> str:
        """Create a folder inside ``container`` and return its id."""
        data = await self._request(
            "Folder creation", "POST", f"{self.api_url}/files",
            params={"fields": "id,name"},
            json={
                "name": name,
                "mimeType": FOLDER_MIME_TYPE,
                "parents": [container or DEFAULT_CONTAINER],
            },
        )
        logger.info("Created folder %s (%s)", name, data["id"])
        return data["id"]
