"""Batch invocation surface: run a folder ingest and report the outcome."""

import logging
import threading
from dataclasses import dataclass

from gallery_ingest.errors import IngestError
from gallery_ingest.ingest.pipeline import IngestionPipeline
from gallery_ingest.models import BatchResult

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Failed to process images"


@dataclass
class IngestResponse:
    """Caller-facing summary of one ingest request."""

    success: bool
    processed_count: int
    message: str
    condition: str | None = None
    status_code: int = 200
    result: BatchResult | None = None

    def to_dict(self) -> dict:
        data: dict = {
            "success": self.success,
            "processedCount": self.processed_count,
            "message": self.message,
        }
        if self.condition is not None:
            data["condition"] = self.condition
        return data

    @classmethod
    def from_error(cls, exc: IngestError) -> "IngestResponse":
        return cls(
            success=False,
            processed_count=0,
            message=str(exc) or GENERIC_FAILURE_MESSAGE,
            condition=exc.condition,
            status_code=exc.status_code,
        )


def ingest_folder(
    pipeline: IngestionPipeline,
    folder_ref: str | None,
    cancel_event: threading.Event | None = None,
) -> IngestResponse:
    """Ingest a folder and translate the outcome into an IngestResponse.

    Never raises: bad input, an empty folder and internal failures each map
    to their own ``condition``.
    """
    if not folder_ref or not folder_ref.strip():
        return IngestResponse(
            success=False,
            processed_count=0,
            message="Folder URL is required",
            condition="bad_input",
            status_code=400,
        )

    logger.info("Starting image processing for folder: %s", folder_ref)
    try:
        result = pipeline.run(folder_ref, cancel_event=cancel_event)
    except IngestError as exc:
        logger.error("Ingest failed (%s): %s", exc.condition, exc)
        return IngestResponse.from_error(exc)
    except Exception:
        logger.exception("Ingest failed unexpectedly")
        return IngestResponse(
            success=False,
            processed_count=0,
            message=GENERIC_FAILURE_MESSAGE,
            condition="internal_error",
            status_code=500,
        )

    count = result.processed_count
    message = f"Successfully processed {count} images from the folder"
    if result.cancelled:
        message += f" ({len(result.cancelled)} cancelled)"
    if result.skipped:
        message += f" ({len(result.skipped)} failed to store)"
    logger.info(message)
    return IngestResponse(success=True, processed_count=count, message=message, result=result)
