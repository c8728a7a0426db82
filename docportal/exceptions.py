# exceptions.py


class PermanentError(Exception):
    """An error that will not be fixed by a retry (e.g., an invalid file name)."""
    pass


class TransientError(Exception):
    """A temporary error (e.g., a network failure) that might resolve on a retry."""
    pass


class StoreUnavailable(TransientError):
    """Transport, authentication or service-side failure talking to the object store."""
    pass


class PayloadTooLarge(PermanentError):
    """The upload exceeds the configured maximum size."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Payload of {size} bytes exceeds the limit of {limit} bytes.")
        self.size = size
        self.limit = limit


class InvalidName(PermanentError):
    """An empty or malformed object name was supplied."""
    pass


class DocumentNotFound(PermanentError):
    """No object exists under the requested name."""
    pass


class ConfigurationError(PermanentError):
    """The process cannot start with the given configuration."""
    pass
