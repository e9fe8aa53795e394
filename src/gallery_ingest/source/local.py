"""Local directory tree as an image source."""

import logging
import mimetypes
import os
from collections.abc import Iterator
from pathlib import Path

from gallery_ingest.errors import InputError
from gallery_ingest.models import ImageAsset

logger = logging.getLogger(__name__)


class LocalFolderSource:
    """SourceProvider that walks a directory on disk.

    Folder references are paths, resolved against ``base_dir`` when relative.
    """

    def __init__(self, base_dir: Path | None = None) -> None:
        self.base_dir = base_dir

    def resolve_folder(self, folder_ref: str) -> str:
        if not folder_ref or not folder_ref.strip():
            raise InputError("Folder path is required")
        path = Path(folder_ref.strip()).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        if not path.is_dir():
            raise InputError(f"Not a directory: {folder_ref}")
        return str(path)

    def list_image_files(self, root: Path) -> list[Path]:
        """Return every image file under ``root``, walking with an explicit worklist."""
        images: list[Path] = []
        pending = [root]
        while pending:
            current = pending.pop()
            try:
                entries = sorted(os.scandir(current), key=lambda e: e.name)
            except OSError as exc:
                logger.warning("Cannot list %s: %s", current, exc)
                continue
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    pending.append(Path(entry.path))
                elif entry.is_file() and guess_image_type(entry.name):
                    images.append(Path(entry.path))
        return images

    def list_and_fetch(self, folder_ref: str) -> Iterator[ImageAsset]:
        root = Path(self.resolve_folder(folder_ref))
        files = self.list_image_files(root)
        logger.info("Found %d image(s) under %s", len(files), root)

        for path in files:
            try:
                data = path.read_bytes()
            except OSError as exc:
                logger.warning("Failed to read %s: %s", path, exc)
                continue
            yield ImageAsset(
                name=path.name,
                data=data,
                mime_type=guess_image_type(path.name) or "application/octet-stream",
                declared_size=len(data),
            )


def guess_image_type(filename: str) -> str | None:
    """Return the image MIME type for a filename, or None for non-images."""
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type and mime_type.startswith("image/"):
        return mime_type
    return None
