"""CRUD operations for the image retrieval index in DuckDB."""

from datetime import UTC

import duckdb

from gallery_ingest.models import ImageMetadataRecord, IndexedImage

_COLUMNS = (
    "id, image_key, image_url, original_name, mime_type, size_bytes, labels, face_count, uploaded_at"
)


def upsert_record(
    conn: duckdb.DuckDBPyConnection,
    record: ImageMetadataRecord,
    mime_type: str | None = None,
) -> None:
    """Insert or replace the index row for a metadata record."""
    uploaded_at = record.metadata.uploaded_at
    if uploaded_at.tzinfo is not None:
        uploaded_at = uploaded_at.astimezone(UTC).replace(tzinfo=None)
    conn.execute(
        """
        INSERT INTO images (
            id, image_key, image_url, original_name, mime_type,
            size_bytes, labels, face_count, uploaded_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (id) DO UPDATE SET
            image_key = EXCLUDED.image_key,
            image_url = EXCLUDED.image_url,
            original_name = EXCLUDED.original_name,
            mime_type = EXCLUDED.mime_type,
            size_bytes = EXCLUDED.size_bytes,
            labels = EXCLUDED.labels,
            face_count = EXCLUDED.face_count,
            uploaded_at = EXCLUDED.uploaded_at,
            indexed_at = now()
        """,
        [
            record.id,
            record.image_key,
            record.image_url,
            record.metadata.original_name,
            mime_type,
            record.metadata.size,
            list(record.labels),
            len(record.faces),
            uploaded_at,
        ],
    )


def update_image_url(conn: duckdb.DuckDBPyConnection, record_id: str, image_url: str) -> None:
    """Replace the locator of an indexed record."""
    conn.execute("UPDATE images SET image_url = ? WHERE id = ?", [image_url, record_id])


def get_record(conn: duckdb.DuckDBPyConnection, record_id: str) -> IndexedImage | None:
    """Look up a single indexed image by record id."""
    row = conn.execute(f"SELECT {_COLUMNS} FROM images WHERE id = ?", [record_id]).fetchone()
    if row is None:
        return None
    return _row_to_indexed_image(row)


def list_records(
    conn: duckdb.DuckDBPyConnection,
    label: str | None = None,
    limit: int | None = None,
) -> list[IndexedImage]:
    """List indexed images, newest first, optionally filtered by label."""
    query = f"SELECT {_COLUMNS} FROM images WHERE 1=1"
    params: list = []
    if label is not None:
        query += " AND list_contains(labels, ?)"
        params.append(label)
    query += " ORDER BY uploaded_at DESC, id"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    rows = conn.execute(query, params).fetchall()
    return [_row_to_indexed_image(row) for row in rows]


def get_label_counts(conn: duckdb.DuckDBPyConnection) -> list[tuple[str, int]]:
    """Return (label, image count) pairs, most frequent first."""
    rows = conn.execute(
        """
        SELECT label, COUNT(*) AS n
        FROM (SELECT unnest(labels) AS label FROM images)
        GROUP BY label
        ORDER BY n DESC, label
        """
    ).fetchall()
    return [(row[0], row[1]) for row in rows]


def _row_to_indexed_image(row: tuple) -> IndexedImage:
    """Convert a DB row tuple to IndexedImage.

    Column order matches ``_COLUMNS``:
    0:id, 1:image_key, 2:image_url, 3:original_name, 4:mime_type,
    5:size_bytes, 6:labels, 7:face_count, 8:uploaded_at
    """
    return IndexedImage(
        id=row[0],
        image_key=row[1],
        image_url=row[2],
        original_name=row[3],
        mime_type=row[4],
        size_bytes=row[5],
        labels=list(row[6] or []),
        face_count=row[7],
        uploaded_at=row[8],
    )
