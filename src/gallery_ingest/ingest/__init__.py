"""Ingest CLI: run folder ingests and manage stored records."""

import argparse


def main() -> None:
    """CLI entry point for ingestion."""
    parser = argparse.ArgumentParser(description="Gallery image ingestion")
    parser.add_argument("--log-level", default=None, help="Log level (default: GALLERY_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    # init-db
    subparsers.add_parser("init-db", help="Initialize the index database schema")

    # run
    run_parser = subparsers.add_parser("run", help="Ingest every image under a folder")
    run_parser.add_argument("folder", help="Google Drive folder URL or ID (or a path with --local)")
    run_parser.add_argument(
        "--local", action="store_true", help="Treat FOLDER as a local directory"
    )
    run_parser.add_argument(
        "--workers", type=int, default=None, help="Parallel items (default: GALLERY_INGEST_MAX_WORKERS)"
    )
    run_parser.add_argument(
        "--continue-on-store-error",
        action="store_true",
        help="Skip items that fail to store instead of failing the batch",
    )
    run_parser.add_argument("--no-labels", action="store_true", help="Disable label detection")
    run_parser.add_argument("--no-faces", action="store_true", help="Disable face detection")
    run_parser.add_argument("--device", default="cuda", help="Device: cuda or cpu (default: cuda)")

    # list
    list_parser = subparsers.add_parser("list", help="List stored images from the index")
    list_parser.add_argument("--label", help="Only images carrying this label")
    list_parser.add_argument("--limit", type=int, default=None, help="Max rows (default: all)")

    # labels
    subparsers.add_parser("labels", help="Show label counts")

    # refresh-urls
    subparsers.add_parser("refresh-urls", help="Re-issue locators for every stored image")

    # reindex
    subparsers.add_parser("reindex", help="Rebuild the index from stored metadata records")

    # face-status
    subparsers.add_parser("face-status", help="Show face identity index status")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    from gallery_ingest.log import setup_logging

    setup_logging(args.log_level)

    if args.command == "init-db":
        from gallery_ingest.db import get_connection

        conn = get_connection()
        conn.close()
        print("Database initialized successfully.")

    elif args.command == "run":
        _cmd_run(args)

    elif args.command == "list":
        from gallery_ingest.db import get_connection
        from gallery_ingest.store.repository import list_records

        conn = get_connection()
        images = list_records(conn, label=args.label, limit=args.limit)
        conn.close()
        for img in images:
            labels = ", ".join(img.labels) or "-"
            print(f"{img.id}  {img.original_name}  faces={img.face_count}  [{labels}]")

    elif args.command == "labels":
        from gallery_ingest.db import get_connection
        from gallery_ingest.store.repository import get_label_counts

        conn = get_connection()
        counts = get_label_counts(conn)
        conn.close()
        for label, count in counts:
            print(f"  {count:>5}  {label}")

    elif args.command == "refresh-urls":
        _cmd_refresh_urls()

    elif args.command == "reindex":
        from gallery_ingest.config import STORE_DIR
        from gallery_ingest.db import get_connection
        from gallery_ingest.store.object_store import LocalObjectStore

        conn = get_connection()
        store = LocalObjectStore(STORE_DIR, index_conn=conn)
        count = store.reindex()
        conn.close()
        print(f"Reindexed {count} records.")

    elif args.command == "face-status":
        _cmd_face_status()


def _build_pipeline(args: argparse.Namespace, conn, on_item_done=None):
    """Construct the pipeline and its collaborators from CLI args."""
    from gallery_ingest.analysis.analyzer import VisionAnalyzer
    from gallery_ingest.analysis.face_index import FaceIndex
    from gallery_ingest.compression import ImageCompressor
    from gallery_ingest.config import INGEST_MAX_WORKERS, STORE_DIR
    from gallery_ingest.ingest.pipeline import IngestionPipeline
    from gallery_ingest.store.object_store import LocalObjectStore

    if args.local:
        from gallery_ingest.source.local import LocalFolderSource

        source = LocalFolderSource()
    else:
        from gallery_ingest.source.drive_client import DriveClient
        from gallery_ingest.source.fetcher import DriveFolderSource

        source = DriveFolderSource(DriveClient())

    label_detector = None
    if not args.no_labels:
        from gallery_ingest.analysis.labels import YOLOLabeler

        label_detector = YOLOLabeler(device=None if args.device == "cuda" else args.device)

    face_detector = None
    face_index = None
    if not args.no_faces:
        from gallery_ingest.analysis.faces import InsightFaceDetector

        face_detector = InsightFaceDetector(device=args.device)
        face_index = FaceIndex(conn, model_name=face_detector.model_name)

    return IngestionPipeline(
        source=source,
        compressor=ImageCompressor(),
        analyzer=VisionAnalyzer(label_detector, face_detector, face_index),
        store=LocalObjectStore(STORE_DIR, index_conn=conn),
        max_workers=args.workers or INGEST_MAX_WORKERS,
        continue_on_store_error=args.continue_on_store_error,
        on_item_done=on_item_done,
    )


def _cmd_run(args: argparse.Namespace) -> None:
    """Ingest a folder with a progress display."""
    import sys

    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

    from gallery_ingest.db import get_connection
    from gallery_ingest.ingest.service import ingest_folder

    conn = get_connection()

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        TextColumn("{task.completed} done"),
        TimeElapsedColumn(),
    ) as progress:
        task = progress.add_task("Ingesting", total=None)
        pipeline = _build_pipeline(args, conn, on_item_done=lambda _: progress.advance(task))
        response = ingest_folder(pipeline, args.folder)

    conn.close()
    print(response.message)

    if response.result is not None:
        degraded = [i.name for i in response.result.items if i.analysis_degraded]
        compressed = [i for i in response.result.items if i.was_compressed]
        print(f"  Stored: {response.processed_count}")
        print(f"  Compressed: {len(compressed)}")
        if degraded:
            print(f"  Analysis degraded: {len(degraded)} ({', '.join(degraded)})")
        if response.result.skipped:
            print(f"  Failed to store: {', '.join(response.result.skipped)}")

    if not response.success:
        sys.exit(1)


def _cmd_refresh_urls() -> None:
    """Re-issue locators for every stored record."""
    from gallery_ingest.config import STORE_DIR
    from gallery_ingest.db import get_connection
    from gallery_ingest.store.object_store import LocalObjectStore

    conn = get_connection()
    store = LocalObjectStore(STORE_DIR, index_conn=conn)
    refreshed = store.refresh_all()
    conn.close()
    print(f"Refreshed {len(refreshed)} locators.")


def _cmd_face_status() -> None:
    """Show face identity index status."""
    from gallery_ingest.analysis.face_index import FaceIndex
    from gallery_ingest.config import DB_PATH, INSIGHTFACE_MODEL_NAME
    from gallery_ingest.db import get_connection

    conn = get_connection()
    images, faces = FaceIndex(conn).stats()
    conn.close()
    print(f"Model: {INSIGHTFACE_MODEL_NAME}")
    print(f"DB: {DB_PATH}")
    print(f"Images with indexed faces: {images}")
    print(f"Indexed faces: {faces}")
    if images > 0:
        print(f"Average faces per image: {faces / images:.1f}")
