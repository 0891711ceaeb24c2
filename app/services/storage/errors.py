"""
Storage error taxonomy shared by every backend
"""


class StorageError(Exception):
    """Base class for persistence failures"""


class NotFound(StorageError):
    """Operation targeted an id that does not exist"""

    def __init__(self, kind: str, entity_id):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class ValidationRejected(StorageError):
    """Backend declined the write (e.g. read-only demo API, constraint violation)"""


class TransportFailure(StorageError):
    """Backend could not be reached (network or storage unavailable)"""


# Callers degrade to local-only state for these; NotFound is a logic error
RECOVERABLE_ERRORS = (ValidationRejected, TransportFailure)


def is_recoverable(error: BaseException) -> bool:
    return isinstance(error, RECOVERABLE_ERRORS)
