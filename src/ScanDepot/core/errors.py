"""Error kinds reported by the ingestion paths and the asset registry."""


class RegistryError(RuntimeError):
    """Base class for every failure the registry reports to its caller.

    ``kind`` is the stable, display-independent name of the failure; the
    message is meant for humans.
    """

    kind = "RegistryError"

    def to_dict(self) -> dict:
        """Return the error as a JSON-ready mapping for the HTTP layer."""
        return {"error": self.kind, "message": str(self)}


class SizeExceededError(RegistryError):
    """Raised when an upload (or its extracted content) is over the size cap."""

    kind = "SizeExceeded"


class UnsupportedTypeError(RegistryError):
    """Raised when neither the file name nor the media type is accepted."""

    kind = "UnsupportedType"


class EmptyBatchError(RegistryError):
    """Raised when a folder upload carries no files."""

    kind = "EmptyBatch"


class CorruptArchiveError(RegistryError):
    """Raised when an archive cannot be opened or extracted."""

    kind = "CorruptArchive"


class NoRecognizedContentError(RegistryError):
    """Raised when an archive holds no recognized imaging file."""

    kind = "NoRecognizedContent"


class StorageWriteFailedError(RegistryError):
    """Raised when writing content or metadata to the storage root fails."""

    kind = "StorageWriteFailed"


class NotFoundError(RegistryError):
    """Raised when no metadata record exists for the requested id."""

    kind = "NotFound"


class MetadataCorruptError(RegistryError):
    """Raised when a metadata record cannot be parsed."""

    kind = "MetadataCorrupt"
