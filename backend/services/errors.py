"""Error taxonomy for checkout and the services around it.

Every error carries a user-displayable ``message`` and the HTTP status the API
layer answers with. ``ArchivalError`` is never surfaced to a checkout caller.
"""


class CakeRaftError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CakeRaftError):
    """Malformed or missing request fields. Raised before any write."""
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(CakeRaftError):
    """A referenced record is missing or inactive; the caller should refresh."""
    status_code = 404
    default_message = "Not found"


class TransactionError(CakeRaftError):
    """Commit-time failure. Nothing was written; the whole operation may be retried."""
    status_code = 503
    default_message = "Could not complete the transaction, please retry"


class ArchivalError(CakeRaftError):
    """Post-commit archival failed. Logged only."""
    default_message = "Bill archival failed"


class ExportError(CakeRaftError):
    """The revenue export sink rejected the rows; no bills were deleted."""
    status_code = 503
    default_message = "Revenue export failed"
