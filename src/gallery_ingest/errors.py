"""Exceptions surfaced at the batch boundary."""


class IngestError(Exception):
    """Base class for failures reported to the batch caller."""

    condition = "internal_error"
    status_code = 500


class InputError(IngestError):
    """Missing or malformed folder reference."""

    condition = "bad_input"
    status_code = 400


class NotFoundError(IngestError):
    """Traversal succeeded but found no images."""

    condition = "not_found"
    status_code = 404


class InternalError(IngestError):
    """Unexpected failure of a collaborator."""


class SourceError(InternalError):
    """The source could not list a folder."""


class StoreError(InternalError):
    """The object store could not persist bytes or a metadata record."""


class ItemStoreError(InternalError):
    """Store failure for a single item, which fails the whole batch."""

    def __init__(self, item_name: str, message: str | None = None) -> None:
        self.item_name = item_name
        super().__init__(message or f"Failed to store image: {item_name}")


class LocatorError(Exception):
    """A locator is malformed, tampered with, or expired."""
