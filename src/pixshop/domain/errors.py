"""Domain errors raised by Pixshop services and adapters."""


class PixshopError(Exception):
    """Base class for Pixshop errors."""


class StorageUnavailableError(PixshopError):
    """The storage medium rejected a write (full, disabled or unreachable)."""


class SnapshotEncodingError(PixshopError):
    """An edit snapshot could not be encoded for persistence."""


class ImageProcessingError(PixshopError):
    """An encoded image could not be decoded or re-encoded."""


class BillingError(PixshopError):
    """The credit ledger or checkout backend returned an error."""
