class PreconditionError(ValueError):
    """A local check failed; nothing was sent to the server."""


class UploadInProgressError(PreconditionError):
    """The upload queue cannot be edited or restarted while it is running."""


class BulkActionBusyError(PreconditionError):
    """Another bulk delete or zip is still in flight."""


class ConfirmationMismatchError(PreconditionError):
    """Typed confirmation text does not match what the action requires."""
