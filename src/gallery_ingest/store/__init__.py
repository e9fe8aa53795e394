"""Object store for ingested images and the DuckDB index over their records."""

from gallery_ingest.store.object_store import LocalObjectStore

__all__ = ["LocalObjectStore"]
