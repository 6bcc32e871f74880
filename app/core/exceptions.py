# app/core/exceptions.py
"""Error taxonomy shared by the services and the HTTP layer."""


class PortalError(Exception):
    """Base error; `message` is shown to the user as-is."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Bad input, rejected before any write. User-correctable."""
    status_code = 400


class NotFoundError(PortalError):
    """Referenced profile, item or loan request does not exist."""
    status_code = 404


class InvalidStateError(PortalError):
    """Operation not allowed in the record's current state."""
    status_code = 409


class StoreError(PortalError):
    """Transient data/object store failure. Safe to retry the whole operation."""
    status_code = 503
