"""Ingestion pipeline: fetch, compress, analyze and store a folder of images."""

import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from gallery_ingest.config import INGEST_MAX_WORKERS
from gallery_ingest.errors import InputError, ItemStoreError, NotFoundError
from gallery_ingest.models import (
    AnalysisResult,
    BatchResult,
    CompressionOutcome,
    ImageAsset,
    ImageMetadataRecord,
    ItemOutcome,
)
from gallery_ingest.protocols import Compressor, ImageAnalyzer, MetadataStore, SourceProvider

logger = logging.getLogger(__name__)

ItemCallback = Callable[[ItemOutcome | None], None]


class _Accumulator:
    """Collects per-item results from worker threads, keyed by source position."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stored: dict[int, tuple[ImageMetadataRecord, ItemOutcome]] = {}
        self._cancelled: dict[int, str] = {}
        self._skipped: dict[int, str] = {}

    def add(self, index: int, record: ImageMetadataRecord, outcome: ItemOutcome) -> None:
        with self._lock:
            self._stored[index] = (record, outcome)

    def cancel(self, index: int, name: str) -> None:
        with self._lock:
            self._cancelled[index] = name

    def skip(self, index: int, name: str) -> None:
        with self._lock:
            self._skipped[index] = name

    def result(self) -> BatchResult:
        with self._lock:
            order = sorted(self._stored)
            return BatchResult(
                records=[self._stored[i][0] for i in order],
                items=[self._stored[i][1] for i in order],
                cancelled=[self._cancelled[i] for i in sorted(self._cancelled)],
                skipped=[self._skipped[i] for i in sorted(self._skipped)],
            )


class IngestionPipeline:
    """Run every image of a folder through compress -> analyze -> store.

    Compression and analysis failures degrade an item but never drop it. A
    store failure fails the whole batch with ItemStoreError, unless
    ``continue_on_store_error`` is set, in which case the item is logged and
    listed in ``BatchResult.skipped``.
    """

    def __init__(
        self,
        source: SourceProvider,
        compressor: Compressor,
        analyzer: ImageAnalyzer,
        store: MetadataStore,
        max_workers: int = INGEST_MAX_WORKERS,
        continue_on_store_error: bool = False,
        id_factory: Callable[[], str] | None = None,
        on_item_done: ItemCallback | None = None,
    ) -> None:
        self.source = source
        self.compressor = compressor
        self.analyzer = analyzer
        self.store = store
        self.max_workers = max(1, max_workers)
        self.continue_on_store_error = continue_on_store_error
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.on_item_done = on_item_done
        self._init_lock = threading.Lock()
        self._initialized = False

    def initialize(self) -> None:
        """One-time analyzer setup, shared by every run of this pipeline."""
        with self._init_lock:
            if self._initialized:
                return
            logger.info("Initializing analyzer")
            self.analyzer.initialize()
            self._initialized = True

    def fetch_assets(self, folder_ref: str) -> list[ImageAsset]:
        """Pull the complete asset list from the source."""
        assets = list(self.source.list_and_fetch(folder_ref))
        if not assets:
            raise NotFoundError("No images found in the provided folder")
        return assets

    def run(
        self, folder_ref: str, cancel_event: threading.Event | None = None
    ) -> BatchResult:
        """Ingest every image under ``folder_ref``.

        Raises:
            InputError: the folder reference is missing or malformed.
            NotFoundError: the folder holds no images.
            ItemStoreError: an item could not be stored.
            SourceError: the source could not list the folder.
        """
        if not folder_ref or not folder_ref.strip():
            raise InputError("Folder URL is required")
        folder_ref = folder_ref.strip()
        self.source.resolve_folder(folder_ref)

        self.initialize()

        logger.info("Step 1: fetching images from %s", folder_ref)
        assets = self.fetch_assets(folder_ref)
        logger.info("Found %d image(s) to process", len(assets))

        cancel = cancel_event or threading.Event()
        acc = _Accumulator()
        workers = min(len(assets), self.max_workers)

        if workers <= 1:
            for index, asset in enumerate(assets):
                self._run_item(index, asset, acc, cancel, len(assets))
        else:
            # Stop unscheduled items on a propagated store failure without
            # touching the caller's cancel token.
            stop = threading.Event()

            def task(index: int, asset: ImageAsset) -> None:
                if stop.is_set():
                    acc.cancel(index, asset.name)
                    return
                try:
                    self._run_item(index, asset, acc, cancel, len(assets))
                except ItemStoreError:
                    stop.set()
                    raise

            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(task, i, a) for i, a in enumerate(assets)]
            first_error = next((f.exception() for f in futures if f.exception()), None)
            if first_error is not None:
                raise first_error

        result = acc.result()
        logger.info(
            "Processed %d image(s) (%d cancelled, %d skipped)",
            result.processed_count,
            len(result.cancelled),
            len(result.skipped),
        )
        return result

    def _run_item(
        self,
        index: int,
        asset: ImageAsset,
        acc: _Accumulator,
        cancel: threading.Event,
        total: int,
    ) -> None:
        if cancel.is_set():
            acc.cancel(index, asset.name)
            return

        logger.info("Processing image %d/%d: %s", index + 1, total, asset.name)
        try:
            record, outcome = self.process_asset(asset)
        except ItemStoreError:
            if not self.continue_on_store_error:
                raise
            logger.error("Skipping %s after store failure", asset.name, exc_info=True)
            acc.skip(index, asset.name)
            self._notify(None)
            return

        acc.add(index, record, outcome)
        self._notify(outcome)

    def process_asset(self, asset: ImageAsset) -> tuple[ImageMetadataRecord, ItemOutcome]:
        """Compress, analyze and store a single asset.

        Raises:
            ItemStoreError: the store rejected the item.
        """
        compressed = self._compress(asset)
        record_id = self.id_factory()
        analysis = self._analyze(compressed.data, record_id, asset.name)

        if analysis.degraded:
            logger.warning("Analysis degraded for %s (%s)", asset.name, record_id)

        try:
            record = self.store.put(
                compressed.data,
                asset.name,
                compressed.mime_type,
                analysis,
                record_id=record_id,
            )
        except Exception as exc:
            logger.error("Store failed for %s: %s", asset.name, exc)
            raise ItemStoreError(asset.name) from exc

        outcome = ItemOutcome(
            name=asset.name,
            record_id=record.id,
            original_size=compressed.original_size,
            compressed_size=compressed.compressed_size,
            was_compressed=compressed.was_compressed,
            analysis_degraded=analysis.degraded,
        )
        return record, outcome

    def _compress(self, asset: ImageAsset) -> CompressionOutcome:
        try:
            return self.compressor.compress(asset.data, asset.mime_type)
        except Exception:
            logger.warning("Compression raised for %s, using original bytes", asset.name, exc_info=True)
            return CompressionOutcome.unchanged(asset.data, asset.mime_type)

    def _analyze(self, data: bytes, record_id: str, name: str) -> AnalysisResult:
        try:
            return self.analyzer.analyze(data, record_id)
        except Exception:
            logger.warning("Analysis raised for %s, storing without labels or faces", name, exc_info=True)
            return AnalysisResult.empty()

    def _notify(self, outcome: ItemOutcome | None) -> None:
        if self.on_item_done is not None:
            self.on_item_done(outcome)
