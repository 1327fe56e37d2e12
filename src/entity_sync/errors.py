"""Exception hierarchy for entity sync.

Only configuration errors abort a batch. Store and transfer errors are
raised by the store adapter and contained by the sync engine in the
smallest unit of work that can hold them (a metadata value, a term, the
media step, or a whole entity).
"""


class EntitySyncError(Exception):
    """Base class for all entity-sync errors."""


class ConfigurationError(EntitySyncError):
    """Invalid or missing site configuration.

    Raised before any enumeration happens, e.g. when source and target
    refer to the same site.
    """


class StoreError(EntitySyncError):
    """A store operation failed.

    Attributes:
        detail: Error message reported by the store (XML-RPC fault
            string or HTTP error).
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.detail = detail or message


class StoreWriteError(StoreError):
    """Creating an entity, term, or metadata entry failed."""


class TransferError(EntitySyncError):
    """Base class for media transfer failures."""


class DownloadError(TransferError):
    """Fetching a remote media resource failed."""


class MediaRegistrationError(TransferError):
    """Registering a downloaded file as a media asset failed."""
