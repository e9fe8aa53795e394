"""Tests for the batch invocation surface."""

from conftest import FlakyStore, StubAnalyzer, StubSource, make_image_bytes

from gallery_ingest.compression import ImageCompressor
from gallery_ingest.ingest.pipeline import IngestionPipeline
from gallery_ingest.ingest.service import ingest_folder
from gallery_ingest.models import ImageAsset


def _pipeline(source, store) -> IngestionPipeline:
    return IngestionPipeline(
        source=source,
        compressor=ImageCompressor(),
        analyzer=StubAnalyzer(),
        store=store,
        max_workers=1,
    )


def _assets(count: int) -> list[ImageAsset]:
    data = make_image_bytes("JPEG")
    return [ImageAsset(name=f"{i}.jpg", data=data, mime_type="image/jpeg") for i in range(count)]


class BrokenSource(StubSource):
    def list_and_fetch(self, folder_ref):
        raise RuntimeError("socket closed")


def test_success_response(store):
    response = ingest_folder(_pipeline(StubSource(_assets(2)), store), "folder-1")

    assert response.success is True
    assert response.status_code == 200
    assert response.processed_count == 2
    assert response.message == "Successfully processed 2 images from the folder"
    assert response.to_dict() == {
        "success": True,
        "processedCount": 2,
        "message": "Successfully processed 2 images from the folder",
    }


def test_missing_reference_is_bad_input(store):
    for ref in (None, "", "  "):
        response = ingest_folder(_pipeline(StubSource(_assets(1)), store), ref)
        assert response.success is False
        assert response.condition == "bad_input"
        assert response.status_code == 400
        assert response.message == "Folder URL is required"


def test_malformed_reference_is_bad_input(store):
    response = ingest_folder(_pipeline(StubSource(_assets(1)), store), "bad-url")
    assert response.condition == "bad_input"
    assert response.message == "Invalid Google Drive folder URL"


def test_empty_folder_is_not_found(store):
    response = ingest_folder(_pipeline(StubSource([]), store), "folder-1")
    assert response.success is False
    assert response.condition == "not_found"
    assert response.status_code == 404
    assert response.processed_count == 0


def test_store_failure_is_internal_error(store):
    flaky = FlakyStore(store, fail_names={"1.jpg"})
    response = ingest_folder(_pipeline(StubSource(_assets(2)), flaky), "folder-1")

    assert response.success is False
    assert response.condition == "internal_error"
    assert response.status_code == 500
    assert response.processed_count == 0
    assert "1.jpg" in response.message


def test_unexpected_error_is_generic_internal_error(store):
    response = ingest_folder(_pipeline(BrokenSource(), store), "folder-1")
    assert response.success is False
    assert response.condition == "internal_error"
    assert response.status_code == 500
    assert response.message == "Failed to process images"
    assert response.to_dict()["condition"] == "internal_error"
