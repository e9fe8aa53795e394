"""Fetch every image under a Google Drive folder tree."""

import logging
from collections.abc import Iterator

import httpx

from gallery_ingest.errors import InputError, SourceError
from gallery_ingest.models import ImageAsset
from gallery_ingest.source.drive_client import DriveClient, DriveFile, extract_folder_id

logger = logging.getLogger(__name__)


class DriveFolderSource:
    """SourceProvider backed by a public Google Drive folder."""

    def __init__(self, client: DriveClient) -> None:
        self.client = client

    def resolve_folder(self, folder_ref: str) -> str:
        folder_id = extract_folder_id(folder_ref or "")
        if not folder_id:
            raise InputError("Invalid Google Drive folder URL")
        return folder_id

    def list_image_files(self, folder_id: str) -> list[DriveFile]:
        """Walk the folder tree and return every image file in it.

        Uses an explicit worklist of folder IDs so that deep trees do not grow
        the call stack. A folder seen twice (shortcuts, multiple parents) is
        walked once.
        """
        images: list[DriveFile] = []
        seen_files: set[str] = set()
        seen_folders: set[str] = {folder_id}
        pending = [folder_id]

        while pending:
            current = pending.pop()
            try:
                children = self.client.list_children(current)
            except httpx.HTTPError as exc:
                raise SourceError(f"Failed to access folder: {current}") from exc

            for item in children:
                if item.is_folder:
                    if item.id not in seen_folders:
                        seen_folders.add(item.id)
                        pending.append(item.id)
                elif item.is_image and item.id not in seen_files:
                    seen_files.add(item.id)
                    images.append(item)

        return images

    def list_and_fetch(self, folder_ref: str) -> Iterator[ImageAsset]:
        """Yield an ImageAsset per image file; failed downloads are skipped."""
        folder_id = self.resolve_folder(folder_ref)
        logger.info("Fetching images from folder %s", folder_id)

        files = self.list_image_files(folder_id)
        logger.info("Found %d image(s)", len(files))

        for f in files:
            try:
                data = self.client.download(f.id)
            except httpx.HTTPError as exc:
                logger.warning("Failed to download %s (%s): %s", f.name, f.id, exc)
                continue
            yield ImageAsset(name=f.name, data=data, mime_type=f.mime_type, declared_size=f.size)

    def verify_folder_access(self, folder_ref: str) -> bool:
        """Return True when the folder exists and is readable with the API key."""
        folder_id = extract_folder_id(folder_ref or "")
        if not folder_id:
            return False
        try:
            return self.client.get_file(folder_id).is_folder
        except httpx.HTTPError:
            return False
