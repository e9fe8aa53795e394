"""Ingest every Google Drive folder listed in a text file.

Usage:
    python scripts/ingest_folders.py folders.txt

One folder URL or ID per line; blank lines and lines starting with '#' are
ignored. Folders are processed one after another with the same pipeline so
that the face index is initialized only once.
"""

import sys
import time
from pathlib import Path

from gallery_ingest.analysis.analyzer import VisionAnalyzer
from gallery_ingest.analysis.face_index import FaceIndex
from gallery_ingest.analysis.faces import InsightFaceDetector
from gallery_ingest.analysis.labels import YOLOLabeler
from gallery_ingest.compression import ImageCompressor
from gallery_ingest.config import STORE_DIR
from gallery_ingest.db import get_connection
from gallery_ingest.ingest.pipeline import IngestionPipeline
from gallery_ingest.ingest.service import ingest_folder
from gallery_ingest.log import setup_logging
from gallery_ingest.source.drive_client import DriveClient
from gallery_ingest.source.fetcher import DriveFolderSource
from gallery_ingest.store.object_store import LocalObjectStore


def read_folder_refs(path: Path) -> list[str]:
    """Read folder references, skipping blanks and comments."""
    refs = []
    for line in path.read_text("utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            refs.append(line)
    return refs


def main() -> None:
    if len(sys.argv) != 2:
        print("Usage: python scripts/ingest_folders.py FOLDERS_FILE")
        return

    setup_logging()
    refs = read_folder_refs(Path(sys.argv[1]))
    print(f"Found {len(refs)} folders\n")

    conn = get_connection()
    face_detector = InsightFaceDetector()
    pipeline = IngestionPipeline(
        source=DriveFolderSource(DriveClient()),
        compressor=ImageCompressor(),
        analyzer=VisionAnalyzer(
            YOLOLabeler(),
            face_detector,
            FaceIndex(conn, model_name=face_detector.model_name),
        ),
        store=LocalObjectStore(STORE_DIR, index_conn=conn),
    )

    total_processed = 0
    failed: list[str] = []

    for i, ref in enumerate(refs, 1):
        print(f"[{i}/{len(refs)}] {ref}")
        response = ingest_folder(pipeline, ref)
        print(f"  -> {response.message}\n")
        if response.success:
            total_processed += response.processed_count
        else:
            failed.append(ref)

        # Rate limit: pause between folders
        time.sleep(2)

    conn.close()
    print(f"\nDone! Total images processed: {total_processed}")
    if failed:
        print(f"Failed folders ({len(failed)}):")
        for ref in failed:
            print(f"  {ref}")


if __name__ == "__main__":
    main()
