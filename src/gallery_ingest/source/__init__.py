"""Image sources: public Google Drive folders and local directories."""

from gallery_ingest.source.fetcher import DriveFolderSource
from gallery_ingest.source.local import LocalFolderSource

__all__ = ["DriveFolderSource", "LocalFolderSource"]
