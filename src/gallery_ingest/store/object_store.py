"""Filesystem object store for image bytes and JSON metadata records.

Layout under ``root_dir``::

    images/<key>            raw image bytes
    metadata/<id>.json      ImageMetadataRecord JSON

Images are addressed through signed, time-limited locators of the form
``<base_url>/<key>?expires=<unix time>&signature=<hex>``.
"""

import dataclasses
import hashlib
import hmac
import json
import logging
import os
import threading
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import parse_qs, quote, unquote, urlsplit

import duckdb

from gallery_ingest.config import LOCATOR_SECRET, LOCATOR_TTL_SECONDS, STORE_BASE_URL
from gallery_ingest.errors import LocatorError, StoreError
from gallery_ingest.models import AnalysisResult, ImageMetadataRecord, RecordProvenance
from gallery_ingest.store.repository import update_image_url, upsert_record

logger = logging.getLogger(__name__)


class LocalObjectStore:
    """MetadataStore writing to a local directory, indexed in DuckDB."""

    def __init__(
        self,
        root_dir: Path,
        base_url: str = STORE_BASE_URL,
        secret: str | None = None,
        ttl_seconds: int = LOCATOR_TTL_SECONDS,
        index_conn: duckdb.DuckDBPyConnection | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.secret = secret or LOCATOR_SECRET
        if not self.secret:
            raise ValueError("Locator secret is required. Set GALLERY_LOCATOR_SECRET in .env file.")
        self.root_dir = Path(root_dir)
        self.images_dir = self.root_dir / "images"
        self.metadata_dir = self.root_dir / "metadata"
        self.base_url = base_url.rstrip("/")
        self.ttl_seconds = ttl_seconds
        self.index_conn = index_conn
        self.clock = clock
        self._index_lock = threading.Lock()

    def put(
        self,
        data: bytes,
        name: str,
        mime_type: str,
        analysis: AnalysisResult,
        record_id: str | None = None,
    ) -> ImageMetadataRecord:
        """Write image bytes, then the metadata record, and return the record.

        The two writes are not atomic as a pair: a failure after the first
        leaves an image blob without a record.
        """
        key = self._make_key(name)
        try:
            _write_atomic(self.images_dir / key, data)
        except OSError as exc:
            raise StoreError(f"Failed to upload image {name}: {exc}") from exc
        logger.info("Uploaded image %s", key)

        record = ImageMetadataRecord(
            id=record_id or _id_from_key(key),
            image_url=self.locator_for(key),
            image_key=key,
            labels=list(analysis.labels),
            faces=list(analysis.faces),
            metadata=RecordProvenance(
                uploaded_at=datetime.now(UTC),
                original_name=name,
                size=len(data),
            ),
        )
        self._write_metadata(record)
        self._index(record, mime_type)
        return record

    def list_all(self) -> list[ImageMetadataRecord]:
        """Read every stored metadata record. Unreadable records are skipped."""
        if not self.metadata_dir.is_dir():
            return []
        records: list[ImageMetadataRecord] = []
        for path in sorted(self.metadata_dir.glob("*.json")):
            try:
                records.append(ImageMetadataRecord.from_dict(json.loads(path.read_text("utf-8"))))
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.warning("Failed to read metadata %s: %s", path.name, exc)
        return records

    def get(self, record_id: str) -> ImageMetadataRecord | None:
        path = self._metadata_path(record_id)
        if not path.exists():
            return None
        return ImageMetadataRecord.from_dict(json.loads(path.read_text("utf-8")))

    def refresh_locator(self, record: ImageMetadataRecord) -> ImageMetadataRecord:
        """Issue a fresh locator for a record and rewrite it. Content is unchanged."""
        refreshed = dataclasses.replace(record, image_url=self.locator_for(record.image_key))
        self._write_metadata(refreshed)
        if self.index_conn is not None:
            with self._index_lock:
                update_image_url(self.index_conn, refreshed.id, refreshed.image_url)
        return refreshed

    def refresh_all(self) -> list[ImageMetadataRecord]:
        """Refresh the locator of every stored record."""
        refreshed: list[ImageMetadataRecord] = []
        for record in self.list_all():
            try:
                refreshed.append(self.refresh_locator(record))
            except (StoreError, duckdb.Error) as exc:
                logger.error("Failed to refresh locator for %s: %s", record.id, exc)
        return refreshed

    def reindex(self) -> int:
        """Rebuild the retrieval index from the metadata records on disk."""
        if self.index_conn is None:
            return 0
        records = self.list_all()
        with self._index_lock:
            for record in records:
                upsert_record(self.index_conn, record)
        return len(records)

    def locator_for(self, key: str, now: float | None = None) -> str:
        """Build a signed locator for an image key, valid for ``ttl_seconds``."""
        expires = int(now if now is not None else self.clock()) + self.ttl_seconds
        signature = self._sign(key, expires)
        return f"{self.base_url}/{quote(key)}?expires={expires}&signature={signature}"

    def resolve_locator(self, url: str, now: float | None = None) -> Path:
        """Verify a locator and return the path of the image it points to."""
        parts = urlsplit(url)
        key = unquote(parts.path.rsplit("/", 1)[-1])
        params = parse_qs(parts.query)
        try:
            expires = int(params["expires"][0])
            signature = params["signature"][0]
        except (KeyError, IndexError, ValueError) as exc:
            raise LocatorError(f"Malformed locator: {url}") from exc

        if not key or "/" in key or key.startswith("."):
            raise LocatorError(f"Malformed locator: {url}")
        if not hmac.compare_digest(signature, self._sign(key, expires)):
            raise LocatorError("Locator signature mismatch")
        if expires < (now if now is not None else self.clock()):
            raise LocatorError("Locator expired")

        path = self.images_dir / key
        if not path.is_file():
            raise LocatorError(f"No stored image for key {key}")
        return path

    def read_bytes(self, key: str) -> bytes:
        return (self.images_dir / key).read_bytes()

    def _sign(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode()
        return hmac.new(self.secret.encode(), message, hashlib.sha256).hexdigest()

    def _make_key(self, name: str) -> str:
        millis = int(self.clock() * 1000)
        return f"{millis}-{uuid.uuid4().hex[:8]}-{_sanitize_filename(name)}"

    def _metadata_path(self, record_id: str) -> Path:
        return self.metadata_dir / f"{record_id}.json"

    def _write_metadata(self, record: ImageMetadataRecord) -> None:
        body = json.dumps(record.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
        try:
            _write_atomic(self._metadata_path(record.id), body)
        except OSError as exc:
            raise StoreError(f"Failed to upload metadata {record.id}: {exc}") from exc
        logger.info("Uploaded metadata %s.json", record.id)

    def _index(self, record: ImageMetadataRecord, mime_type: str | None) -> None:
        if self.index_conn is None:
            return
        try:
            with self._index_lock:
                upsert_record(self.index_conn, record, mime_type)
        except duckdb.Error:
            # The JSON record is authoritative; `reindex` repairs the index.
            logger.exception("Failed to index record %s", record.id)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def _id_from_key(key: str) -> str:
    """Derive a record id from the key's ``<millis>-<token>`` prefix."""
    millis, token, _ = key.split("-", 2)
    return f"{millis}-{token}"


def _sanitize_filename(name: str) -> str:
    """Convert a display name into a safe object key suffix."""
    safe = "".join(c if c.isalnum() or c in "._- " else "" for c in name)
    safe = safe.strip().replace(" ", "_").lstrip(".")
    return safe or "image"
