"""Google Drive v3 REST API client."""

import re
from dataclasses import dataclass

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from gallery_ingest.config import DRIVE_PAGE_SIZE, GOOGLE_DRIVE_API_BASE, GOOGLE_DRIVE_API_KEY

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

_FOLDER_ID_PATTERNS = (
    re.compile(r"folders/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
)
_BARE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{10,}$")


@dataclass(frozen=True)
class DriveFile:
    """Metadata for a single Drive file or folder."""

    id: str
    name: str
    mime_type: str
    size: int

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


class DriveClient:
    """Client for the public Google Drive v3 API (API-key auth)."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: int = 30,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or GOOGLE_DRIVE_API_KEY
        if not self.api_key:
            raise ValueError(
                "Google Drive API key is required. Set GOOGLE_DRIVE_API_KEY in .env file."
            )
        self.timeout = timeout
        self.transport = transport

    def _client(self, timeout: float | None = None) -> httpx.Client:
        return httpx.Client(
            base_url=GOOGLE_DRIVE_API_BASE,
            timeout=timeout or self.timeout,
            transport=self.transport,
        )

    def _get_json(self, path: str, **params: str) -> dict:
        """GET a Drive endpoint and return the parsed JSON."""
        params["key"] = self.api_key
        with self._client() as client:
            resp = client.get(path, params=params)
            resp.raise_for_status()
        return resp.json()

    def list_children(self, folder_id: str) -> list[DriveFile]:
        """List every non-trashed item directly inside a folder, across all pages."""
        children: list[DriveFile] = []
        page_token: str | None = None
        while True:
            params = {
                "q": f"'{folder_id}' in parents and trashed=false",
                "fields": "nextPageToken, files(id, name, mimeType, size)",
                "pageSize": str(DRIVE_PAGE_SIZE),
            }
            if page_token:
                params["pageToken"] = page_token
            data = self._get_json("/files", **params)
            for f in data.get("files", []):
                children.append(
                    DriveFile(
                        id=f["id"],
                        name=f.get("name", f["id"]),
                        mime_type=f.get("mimeType", ""),
                        size=int(f.get("size") or 0),
                    )
                )
            page_token = data.get("nextPageToken")
            if not page_token:
                break
        return children

    def get_file(self, file_id: str) -> DriveFile:
        """Fetch metadata for a single file or folder."""
        f = self._get_json(f"/files/{file_id}", fields="id, name, mimeType, size")
        return DriveFile(
            id=f["id"],
            name=f.get("name", f["id"]),
            mime_type=f.get("mimeType", ""),
            size=int(f.get("size") or 0),
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, max=10),
        retry=retry_if_exception_type(httpx.TimeoutException),
        reraise=True,
    )
    def download(self, file_id: str) -> bytes:
        """Download a file's content."""
        with self._client(timeout=120) as client:
            resp = client.get(f"/files/{file_id}", params={"alt": "media", "key": self.api_key})
            resp.raise_for_status()
        return resp.content


def extract_folder_id(folder_ref: str) -> str | None:
    """Extract the folder ID from a Drive folder URL or a bare folder ID.

    Supported forms:
        https://drive.google.com/drive/folders/FOLDER_ID
        https://drive.google.com/drive/folders/FOLDER_ID?usp=sharing
        https://drive.google.com/open?id=FOLDER_ID
        FOLDER_ID
    """
    ref = folder_ref.strip()
    for pattern in _FOLDER_ID_PATTERNS:
        match = pattern.search(ref)
        if match:
            return match.group(1)
    if _BARE_ID_RE.match(ref):
        return ref
    return None
